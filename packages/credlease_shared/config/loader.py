"""Settings loading with deterministic precedence.

The cascade is always:
1) explicit overrides (CLI params)
2) environment variables (``CREDLEASE_`` prefix, ``__`` nesting)
3) YAML config file (``~/.config/credlease/credlease.yaml`` or
   ``$CREDLEASE_CONFIG_PATH``)
4) built-in model defaults

Example: ``CREDLEASE_LOGGING__LEVEL=DEBUG`` sets ``logging.level``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH, CredleaseSettings


def load_settings(
    *,
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CredleaseSettings:
    """Load root settings, reading YAML from ``config_path`` when given."""
    resolved_path = _resolve_config_path(config_path)
    settings_cls = CredleaseSettings
    if resolved_path != DEFAULT_CONFIG_PATH:
        settings_cls = type(
            "CredleaseSettings",
            (CredleaseSettings,),
            {
                "__module__": CredleaseSettings.__module__,
                "model_config": SettingsConfigDict(yaml_file=resolved_path),
            },
        )
    return settings_cls(**dict(overrides or {}))


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """Return the explicit path, the env-provided path, or the default."""
    if config_path is not None:
        return Path(config_path).expanduser()
    from_env = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_PATH
