"""Provider/model catalog backed by the packaged `models.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import re
from typing import Any

from phish_email_analyzer.config.settings import PACKAGE_ROOT, load_yaml

DEFAULT_CATALOG_PATH = PACKAGE_ROOT / "config" / "models.yaml"
CUSTOM_MODEL_ID = "__custom__"
_CUSTOM_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: str = ""
    recommended: bool = False
    supports_tool_calling: bool = True


@dataclass(frozen=True)
class ProviderInfo:
    id: str
    name: str
    description: str
    default_model: str
    supports_tool_calling: bool
    models: tuple[ModelInfo, ...]
    api_key_prefix: str = ""
    api_key_min_length: int = 1


@dataclass(frozen=True)
class CustomModelSettings:
    enabled: bool = True
    description: str = ""
    min_length: int = 1
    max_length: int = 100
    allowed_characters: str = "letters, digits, hyphen, underscore and dot"


@dataclass(frozen=True)
class ModelOption:
    id: str
    name: str
    description: str = ""
    recommended: bool = False
    is_custom: bool = False


@dataclass(frozen=True)
class ModelCatalog:
    version: str
    providers: dict[str, ProviderInfo]
    custom_model: CustomModelSettings

    def provider(self, provider_id: str) -> ProviderInfo | None:
        return self.providers.get(str(provider_id or "").strip().lower())

    def provider_names(self) -> dict[str, str]:
        return {key: info.name for key, info in self.providers.items()}

    def default_model(self, provider_id: str) -> str:
        info = self.provider(provider_id)
        return info.default_model if info else "gpt-4o-mini"

    def supports_tool_calling(self, provider_id: str, model: str) -> bool:
        info = self.provider(provider_id)
        if info is None:
            return False
        for item in info.models:
            if item.id == model:
                return item.supports_tool_calling
        return info.supports_tool_calling

    def model_options(self, provider_id: str) -> list[ModelOption]:
        info = self.provider(provider_id)
        if info is None:
            return []
        options = [
            ModelOption(id=item.id, name=item.name, description=item.description, recommended=item.recommended)
            for item in info.models
        ]
        if self.custom_model.enabled:
            options.append(
                ModelOption(
                    id=CUSTOM_MODEL_ID,
                    name="Custom model",
                    description=self.custom_model.description,
                    is_custom=True,
                )
            )
        return options

    def validate_custom_model(self, model_name: str) -> tuple[bool, str | None]:
        settings = self.custom_model
        if not settings.enabled:
            return False, "Custom models are disabled."
        trimmed = (model_name or "").strip()
        if not trimmed:
            return False, "Model name must not be empty."
        if len(trimmed) < settings.min_length:
            return False, f"Model name needs at least {settings.min_length} characters."
        if len(trimmed) > settings.max_length:
            return False, f"Model name must not exceed {settings.max_length} characters."
        if not _CUSTOM_NAME_PATTERN.match(trimmed):
            return False, f"Model name may only contain {settings.allowed_characters}."
        return True, None


def _parse_models(raw: Any) -> tuple[ModelInfo, ...]:
    if not isinstance(raw, list):
        return ()
    models: list[ModelInfo] = []
    for row in raw:
        if not isinstance(row, dict) or not str(row.get("id", "")).strip():
            continue
        models.append(
            ModelInfo(
                id=str(row["id"]).strip(),
                name=str(row.get("name") or row["id"]),
                description=str(row.get("description") or ""),
                recommended=bool(row.get("recommended", False)),
                supports_tool_calling=bool(row.get("supports_tool_calling", True)),
            )
        )
    return tuple(models)


def parse_catalog(payload: dict[str, Any]) -> ModelCatalog:
    providers: dict[str, ProviderInfo] = {}
    raw_providers = payload.get("providers")
    for key, row in (raw_providers if isinstance(raw_providers, dict) else {}).items():
        if not isinstance(row, dict):
            continue
        models = _parse_models(row.get("models"))
        provider_id = str(key).strip().lower()
        providers[provider_id] = ProviderInfo(
            id=provider_id,
            name=str(row.get("name") or key),
            description=str(row.get("description") or ""),
            default_model=str(row.get("default_model") or (models[0].id if models else "")),
            supports_tool_calling=bool(row.get("supports_tool_calling", False)),
            models=models,
            api_key_prefix=str(row.get("api_key_prefix") or ""),
            api_key_min_length=int(row.get("api_key_min_length") or 1),
        )

    raw_custom = payload.get("custom_model")
    custom = raw_custom if isinstance(raw_custom, dict) else {}
    return ModelCatalog(
        version=str(payload.get("version") or "0"),
        providers=providers,
        custom_model=CustomModelSettings(
            enabled=bool(custom.get("enabled", True)),
            description=str(custom.get("description") or ""),
            min_length=int(custom.get("min_length") or 1),
            max_length=int(custom.get("max_length") or 100),
            allowed_characters=str(
                custom.get("allowed_characters") or CustomModelSettings.allowed_characters
            ),
        ),
    )


@lru_cache(maxsize=4)
def _load_catalog_cached(path: str) -> ModelCatalog:
    return parse_catalog(load_yaml(path))


def load_catalog(path: str | Path | None = None) -> ModelCatalog:
    return _load_catalog_cached(str(path or DEFAULT_CATALOG_PATH))


def reload_catalog() -> None:
    _load_catalog_cached.cache_clear()
