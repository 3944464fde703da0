"""Public entry points: wire config, gateway, tools and the loop."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from pathlib import Path
import threading

from phish_email_analyzer.config.settings import AppConfig, load_config
from phish_email_analyzer.domain.content import check_email_content, detect_encrypted_content
from phish_email_analyzer.domain.models import DEFAULT_MAX_EMAIL_CHARS, AnalysisRequest, AnalysisResult
from phish_email_analyzer.orchestrator.agent import AgentOrchestrator, AgentRun
from phish_email_analyzer.orchestrator.state import ConversationState
from phish_email_analyzer.orchestrator.tracing import TraceEvent, error_event, make_event
from phish_email_analyzer.orchestrator.validator import error_result
from phish_email_analyzer.providers.gateway import ModelGateway, gateway_from_settings
from phish_email_analyzer.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class PhishingDetector:
    """Stateless across requests; one instance may serve many analyses."""

    gateway: ModelGateway
    orchestrator: AgentOrchestrator
    max_email_chars: int = DEFAULT_MAX_EMAIL_CHARS

    @property
    def registry(self) -> ToolRegistry:
        return self.orchestrator.registry

    def analyze(self, request: AnalysisRequest, *, cancel_event: threading.Event | None = None) -> AnalysisResult:
        return self.analyze_detailed(request, cancel_event=cancel_event).result

    def analyze_detailed(
        self,
        request: AnalysisRequest,
        *,
        cancel_event: threading.Event | None = None,
    ) -> AgentRun:
        """Run one analysis and keep the ledger and trace.

        Raises ConfigError for a rejected model config; every other
        failure comes back as an error-flagged result.
        """

        model = self.gateway.create_model(request.llm_config)

        input_error = check_email_content(request.email_content, max_chars=self.max_email_chars)
        if input_error is not None:
            logger.warning("rejected email content: %s", input_error.code)
            return AgentRun(
                result=error_result(input_error),
                ledger=ConversationState(),
                trace=[error_event("input", input_error)],
                model_calls=0,
                error=input_error,
            )

        pre_trace: list[TraceEvent] = []
        notice = detect_encrypted_content(request.email_content)
        if notice.is_encrypted:
            logger.warning("encrypted content detected (%s)", notice.encryption_type)
            pre_trace.append(
                make_event("input", "warning", notice.warning or "", {"encryption_type": notice.encryption_type})
            )

        run = self.orchestrator.run(
            model,
            request,
            cancel_event=cancel_event,
            encryption_warning=notice.warning,
        )
        if not pre_trace:
            return run
        return replace(run, trace=pre_trace + run.trace)


def build_detector(config: AppConfig, *, registry: ToolRegistry | None = None) -> PhishingDetector:
    return PhishingDetector(
        gateway=gateway_from_settings(config),
        orchestrator=AgentOrchestrator(
            registry=registry or ToolRegistry.default(),
            round_cap=config.round_cap,
            honor_completion_marker=config.honor_completion_marker,
        ),
        max_email_chars=config.max_email_chars,
    )


def create_detector(
    *,
    profile_override: str | None = None,
    config_path: str | Path | None = None,
) -> tuple[PhishingDetector, AppConfig]:
    config, _ = load_config(config_path, profile_override=profile_override)
    return build_detector(config), config


def analyze_email(
    email_content: str,
    config: AppConfig | None = None,
    *,
    use_tools: bool | None = None,
    cancel_event: threading.Event | None = None,
) -> AnalysisResult:
    """One-shot helper using env/yaml config when none is given."""

    active = config or load_config()[0]
    detector = build_detector(active)
    return detector.analyze(active.to_request(email_content, use_tools=use_tools), cancel_event=cancel_event)
