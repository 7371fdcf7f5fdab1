"""Public API for shared credlease configuration utilities."""

from .loader import load_settings
from .models import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    CredleaseSettings,
    LoggingSettings,
    resolve_component_settings,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "CredleaseSettings",
    "LoggingSettings",
    "load_settings",
    "resolve_component_settings",
]
