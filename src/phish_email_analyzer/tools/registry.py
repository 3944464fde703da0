"""Static registry of the analysis tools offered to the model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import json
import logging
import time
from types import MappingProxyType
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from phish_email_analyzer.core.errors import AnalysisError, ErrorKind
from phish_email_analyzer.domain.models import ToolConfig, ToolSettings
from phish_email_analyzer.tools.attachment_scanner import scan_attachments
from phish_email_analyzer.tools.domain_checker import check_domains
from phish_email_analyzer.tools.header_analyzer import analyze_headers
from phish_email_analyzer.tools.url_analyzer import analyze_urls
from phish_email_analyzer.tools.web_search import DEFAULT_MAX_RESULTS, SearchBackend, backend_for, web_search

logger = logging.getLogger(__name__)

ToolRunner = Callable[[BaseModel, ToolConfig], dict[str, Any]]
BackendFactory = Callable[[str | None], SearchBackend]


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


class _ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UrlAnalyzerArgs(_ToolArgs):
    urls: list[str] = Field(description="URLs found in the email.")

    @field_validator("urls", mode="before")
    @classmethod
    def _coerce_urls(cls, value: Any) -> Any:
        return _as_list(value)


class DomainCheckerArgs(_ToolArgs):
    domains: list[str] = Field(description="Domains (or addresses/URLs) to check.")

    @field_validator("domains", mode="before")
    @classmethod
    def _coerce_domains(cls, value: Any) -> Any:
        return _as_list(value)


class HeaderAnalyzerArgs(_ToolArgs):
    sender: str = Field(default="", alias="from", description="From header value.")
    reply_to: str = Field(default="", description="Reply-To header value.")
    return_path: str = Field(default="", description="Return-Path header value.")
    received: list[str] = Field(default_factory=list, description="Received headers, newest first.")
    message_id: str = Field(default="", description="Message-ID header value.")
    date: str = Field(default="", description="Date header value.")

    @field_validator("received", mode="before")
    @classmethod
    def _coerce_received(cls, value: Any) -> Any:
        return _as_list(value) or []


class AttachmentArgs(_ToolArgs):
    filename: str
    mime_type: str = ""
    size: int | None = None


class AttachmentScannerArgs(_ToolArgs):
    attachments: list[AttachmentArgs] = Field(description="Attachment metadata entries.")

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> Any:
        value = _as_list(value)
        if isinstance(value, dict):
            value = [value]
        if isinstance(value, list):
            return [{"filename": item} if isinstance(item, str) else item for item in value]
        return value


class WebSearchArgs(_ToolArgs):
    query: str = Field(description="Search query, e.g. a sender domain plus 'scam'.")
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, description="Maximum number of results.")


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    args_model: type[BaseModel]
    runner: ToolRunner

    def schema(self) -> dict[str, Any]:
        parameters = self.args_model.model_json_schema(by_alias=True)
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": parameters},
        }


@dataclass(frozen=True)
class ToolExecutionResult:
    ok: bool
    tool_name: str
    output: dict[str, Any]
    error: AnalysisError | None = None
    elapsed_ms: int = 0

    def to_observation(self) -> str:
        return json.dumps(self.output, ensure_ascii=False, default=str)


def _error_payload(message: str) -> dict[str, Any]:
    return {"error": True, "message": message}


def _run_url_analyzer(args: UrlAnalyzerArgs, _: ToolConfig) -> dict[str, Any]:
    return analyze_urls(args.urls)


def _run_domain_checker(args: DomainCheckerArgs, _: ToolConfig) -> dict[str, Any]:
    return check_domains(args.domains)


def _run_header_analyzer(args: HeaderAnalyzerArgs, _: ToolConfig) -> dict[str, Any]:
    return analyze_headers(
        sender=args.sender,
        reply_to=args.reply_to,
        return_path=args.return_path,
        received=args.received,
        message_id=args.message_id,
        date=args.date,
    )


def _run_attachment_scanner(args: AttachmentScannerArgs, _: ToolConfig) -> dict[str, Any]:
    return scan_attachments([item.model_dump(by_alias=True) for item in args.attachments])


class ToolRegistry:
    """Immutable name -> descriptor mapping; safe to share across requests."""

    def __init__(self, descriptors: Mapping[str, ToolDescriptor]):
        self._descriptors = MappingProxyType(dict(descriptors))

    @classmethod
    def default(cls, *, backend_factory: BackendFactory | None = None) -> "ToolRegistry":
        make_backend = backend_factory or backend_for

        def _run_web_search(args: WebSearchArgs, config: ToolConfig) -> dict[str, Any]:
            api_key = config.api_key or config.settings.get("api_key")
            return web_search(args.query, args.max_results, backend=make_backend(api_key))

        descriptors = (
            ToolDescriptor(
                "url_analyzer",
                "Analyze URLs for phishing traits: IP hosts, shorteners, deep subdomains, "
                "phishing keywords and redirect parameters.",
                UrlAnalyzerArgs,
                _run_url_analyzer,
            ),
            ToolDescriptor(
                "domain_checker",
                "Check domains for brand impersonation, digit-heavy names, excessive hyphens "
                "and suspicious TLDs.",
                DomainCheckerArgs,
                _run_domain_checker,
            ),
            ToolDescriptor(
                "header_analyzer",
                "Inspect sender headers: free-mail impersonation, Reply-To/Return-Path mismatch, "
                "relay hops, Message-ID and Date anomalies.",
                HeaderAnalyzerArgs,
                _run_header_analyzer,
            ),
            ToolDescriptor(
                "attachment_scanner",
                "Assess attachment metadata: dangerous or macro extensions, double extensions, "
                "enticing names, MIME mismatch and unusual sizes.",
                AttachmentScannerArgs,
                _run_attachment_scanner,
            ),
            ToolDescriptor(
                "web_search",
                "Search the web to verify senders, companies or reported scams.",
                WebSearchArgs,
                _run_web_search,
            ),
        )
        return cls({item.name: item for item in descriptors})

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._descriptors)

    def get(self, name: str) -> ToolDescriptor | None:
        return self._descriptors.get(name)

    def enabled(self, settings: ToolSettings) -> tuple[ToolDescriptor, ...]:
        return tuple(item for name, item in self._descriptors.items() if name in settings.enabled_tools)

    def schemas(self, settings: ToolSettings) -> list[dict[str, Any]]:
        return [item.schema() for item in self.enabled(settings)]

    def invoke(self, name: str, args: Mapping[str, Any] | None, settings: ToolSettings) -> ToolExecutionResult:
        """Run one tool; every failure is folded into an error observation."""

        start = time.perf_counter()

        def _failed(code: str, message: str, detail: str = "") -> ToolExecutionResult:
            logger.warning("tool %s failed (%s): %s", name, code, detail or message)
            return ToolExecutionResult(
                ok=False,
                tool_name=name,
                output=_error_payload(message),
                error=AnalysisError(
                    kind=ErrorKind.TOOL_EXECUTION,
                    code=code,
                    message=message,
                    detail=detail,
                    recoverable=True,
                ),
                elapsed_ms=int((time.perf_counter() - start) * 1000),
            )

        descriptor = self._descriptors.get(name)
        if descriptor is None:
            return _failed("unknown_tool", f"Unknown tool: {name}")
        if name not in settings.enabled_tools:
            return _failed("tool_disabled", f"Tool {name} is not enabled for this request.")
        try:
            parsed = descriptor.args_model.model_validate(dict(args or {}))
        except ValidationError as exc:
            return _failed("invalid_arguments", f"Invalid arguments for {name}.", str(exc))
        try:
            output = descriptor.runner(parsed, settings.config_for(name))
        except Exception as exc:
            logger.exception("tool %s raised", name)
            return _failed("tool_exception", f"Tool {name} failed: {type(exc).__name__}", str(exc))

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug("tool %s finished in %d ms", name, elapsed_ms)
        ok = not (isinstance(output, dict) and output.get("error") is True)
        return ToolExecutionResult(ok=ok, tool_name=name, output=output, elapsed_ms=elapsed_ms)
