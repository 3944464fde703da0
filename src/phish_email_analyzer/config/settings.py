"""Config loader from env + yaml."""

from __future__ import annotations

from pathlib import Path
import os
from typing import Any

import yaml
from pydantic import BaseModel, Field

from phish_email_analyzer.domain.models import AnalysisRequest, ModelConfig, ToolSettings

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "config" / "defaults.yaml"
ENV_PREFIX = "PHISH_ANALYZER_"
DEFAULT_TOOLS = ["url_analyzer", "domain_checker", "header_analyzer", "attachment_scanner", "web_search"]

_PROVIDER_KEY_ENV = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


class AppConfig(BaseModel):

    profile: str = Field(default="openai")
    provider: str = Field(default="openai")
    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.0)
    api_key: str | None = Field(default=None, repr=False)
    round_cap: int = Field(default=5)
    request_timeout_s: float = Field(default=60.0)
    max_retries: int = Field(default=2)
    max_email_chars: int = Field(default=50_000)
    use_tools: bool = Field(default=True)
    enabled_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_TOOLS))
    honor_completion_marker: bool = Field(default=False)
    search_api_key: str | None = Field(default=None, repr=False)
    log_level: str = Field(default="INFO")
    default_config_path: str = Field(default=str(DEFAULT_CONFIG_PATH))

    def model_settings(self) -> ModelConfig:
        return ModelConfig(
            provider=self.provider,
            model=self.model,
            temperature=self.temperature,
            api_key=self.api_key or "",
        )

    def to_request(self, email_content: str, *, use_tools: bool | None = None) -> AnalysisRequest:
        per_tool: dict[str, Any] = {}
        if self.search_api_key:
            per_tool["web_search"] = {"api_key": self.search_api_key}
        return AnalysisRequest(
            email_content=email_content,
            llm_config=self.model_settings(),
            use_tools=self.use_tools if use_tools is None else use_tools,
            tool_settings=ToolSettings(enabled_tools=self.enabled_tools, per_tool_config=per_tool),
        )


def _normalize_provider(raw: Any) -> str:
    provider = str(raw or "").strip().lower()
    if provider in {"gemini", "google-genai"}:
        return "google"
    if provider == "claude":
        return "anthropic"
    return provider or "openai"


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    return payload if isinstance(payload, dict) else {}


def _pick_env(name: str, fallback: Any) -> Any:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    return value if value not in (None, "") else fallback


def _parse_list(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return list(dict.fromkeys(item.strip() for item in raw.split(",") if item.strip()))
    if isinstance(raw, list):
        return list(dict.fromkeys(str(item).strip() for item in raw if str(item).strip()))
    return []


def _parse_int(raw: Any, fallback: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value > 0 else fallback


def _parse_non_negative_int(raw: Any, fallback: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value >= 0 else fallback


def _parse_float(raw: Any, fallback: float) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return fallback


def _parse_bool(raw: Any, fallback: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return fallback
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_str(raw: Any, fallback: str) -> str:
    value = str(raw if raw is not None else "").strip()
    return value or fallback


def _provider_api_key(provider: str) -> str | None:
    for name in _PROVIDER_KEY_ENV.get(provider, ()):
        value = os.getenv(name)
        if value:
            return value
    return None


def _resolve_default_config_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_default_path = os.getenv(f"{ENV_PREFIX}DEFAULT_CONFIG_PATH")
    if env_default_path:
        return Path(env_default_path)
    return DEFAULT_CONFIG_PATH


def load_config(
    path: str | Path | None = None,
    *,
    profile_override: str | None = None,
) -> tuple[AppConfig, dict[str, Any]]:
    default_path = _resolve_default_config_path(path)
    merged = load_yaml(default_path)
    profiles = merged.get("profiles")
    profile_map = profiles if isinstance(profiles, dict) else {}

    active_profile = str(profile_override or _pick_env("PROFILE", merged.get("profile", "openai")))
    selected_profile = profile_map.get(active_profile, {})
    selected = selected_profile if isinstance(selected_profile, dict) else {}
    # An explicit profile keeps provider/model deterministic and ignores selector env vars.
    use_selector_env = profile_override is None

    def _pick(name: str, key: str, default: Any) -> Any:
        return _pick_env(name, selected.get(key, merged.get(key, default)))

    def _pick_selector(name: str, key: str, default: Any) -> Any:
        fallback = selected.get(key, merged.get(key, default))
        if use_selector_env:
            return _pick_env(name, fallback)
        return fallback

    provider = _normalize_provider(_pick_selector("PROVIDER", "provider", "openai"))
    api_key = _pick("API_KEY", "api_key", None) or _provider_api_key(provider)

    payload = {
        "profile": active_profile,
        "provider": provider,
        "model": _parse_str(_pick_selector("MODEL", "model", "gpt-4o-mini"), "gpt-4o-mini"),
        "temperature": _parse_float(_pick_selector("TEMPERATURE", "temperature", 0.0), 0.0),
        "api_key": api_key,
        "round_cap": _parse_int(_pick("ROUND_CAP", "round_cap", 5), 5),
        "request_timeout_s": _parse_float(_pick("REQUEST_TIMEOUT_S", "request_timeout_s", 60.0), 60.0),
        "max_retries": _parse_non_negative_int(_pick("MAX_RETRIES", "max_retries", 2), 2),
        "max_email_chars": _parse_int(_pick("MAX_EMAIL_CHARS", "max_email_chars", 50_000), 50_000),
        "use_tools": _parse_bool(_pick("USE_TOOLS", "use_tools", True), True),
        "enabled_tools": _parse_list(_pick("ENABLED_TOOLS", "enabled_tools", DEFAULT_TOOLS)),
        "honor_completion_marker": _parse_bool(
            _pick("HONOR_COMPLETION_MARKER", "honor_completion_marker", False),
            False,
        ),
        "search_api_key": _pick("SEARCH_API_KEY", "search_api_key", None) or os.getenv("TAVILY_API_KEY") or None,
        "log_level": _parse_str(_pick("LOG_LEVEL", "log_level", "INFO"), "INFO").upper(),
        "default_config_path": str(default_path),
    }

    cfg = AppConfig.model_validate(payload)
    return cfg, merged
