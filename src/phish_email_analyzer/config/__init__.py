"""Configuration loading."""

from phish_email_analyzer.config.settings import AppConfig, load_config, load_yaml

__all__ = ["AppConfig", "load_config", "load_yaml"]
