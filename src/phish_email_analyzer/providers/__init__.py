"""Model provider adapters."""

from phish_email_analyzer.providers.catalog import ModelCatalog, load_catalog
from phish_email_analyzer.providers.gateway import ConfigValidation, ConnectionCheck, ModelGateway
from phish_email_analyzer.providers.litellm_chat import LiteLLMChatModel, ModelHandle

__all__ = [
    "ConfigValidation",
    "ConnectionCheck",
    "LiteLLMChatModel",
    "ModelCatalog",
    "ModelGateway",
    "ModelHandle",
    "load_catalog",
]
