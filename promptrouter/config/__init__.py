"""Configuration module for promptrouter."""

from promptrouter.config.loader import load_config, save_config, get_config_path
from promptrouter.config.schema import (
    Config,
    LoggingConfig,
    ProviderConfig,
    ProvidersConfig,
    RoutingConfig,
)

__all__ = [
    "Config",
    "LoggingConfig",
    "ProviderConfig",
    "ProvidersConfig",
    "RoutingConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
