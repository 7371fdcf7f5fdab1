"""Shared helpers for integration tests."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def real_provider_tests_enabled() -> bool:
    """Return True when real-provider integration tests are explicitly enabled."""
    raw = os.getenv("CREDLEASE_RUN_INTEGRATION_REAL", "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class StaticCredential:
    """Username/secret pair probed directly, such as a datastore root login."""

    username: str
    secret: str = field(repr=False)
