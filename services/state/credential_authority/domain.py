"""Domain contracts for Credential Authority Service payloads."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from resources.substrates.postgres import ConnectionAttemptResult, ConnectionOutcome

__all__ = [
    "BootstrapReport",
    "ConnectionAttemptResult",
    "ConnectionOutcome",
    "HealthStatus",
    "Lease",
    "LeaseValidity",
    "Role",
    "RotationEpoch",
    "RotationState",
    "RotationStatus",
]


class Role(BaseModel):
    """Named credential policy tied to exactly one datastore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    datastore: str = Field(min_length=1)
    creation_statements: tuple[str, ...] = ()
    default_ttl_seconds: int = Field(default=3600, gt=0)
    max_ttl_seconds: int = Field(default=86400, gt=0)


class Lease(BaseModel):
    """One credential issued for a role during a specific rotation generation.

    ``lease_duration_seconds == 0`` means the broker granted no natural expiry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    lease_id: str = Field(min_length=1)
    role: str = Field(min_length=1)
    username: str
    secret: str = Field(repr=False)
    issued_at: datetime
    lease_duration_seconds: int = Field(ge=0)
    generation: int = Field(ge=0)
    renewable: bool = False

    @property
    def expires_at(self) -> datetime | None:
        if self.lease_duration_seconds == 0:
            return None
        return self.issued_at + timedelta(seconds=self.lease_duration_seconds)

    def is_expired(self, now: datetime) -> bool:
        """Return whether the natural lease window has closed at ``now``."""
        expires_at = self.expires_at
        return expires_at is not None and now >= expires_at


class RotationEpoch(BaseModel):
    """Current root-credential generation for one datastore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastore: str
    generation: int = Field(ge=0)
    rotated_at: datetime
    broker_marker: str | None = None


class LeaseValidity(str, Enum):
    """Local validity verdict for a previously issued lease."""

    FRESH = "fresh"
    STALE = "stale"
    NOT_FOUND = "not_found"


class RotationState(str, Enum):
    """Per-datastore rotation state machine position."""

    IDLE = "idle"
    ROTATING = "rotating"


class RotationStatus(BaseModel):
    """Local epoch and coordinator state, plus the broker's view when reachable."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastore: str
    state: RotationState
    epoch: RotationEpoch
    roles: tuple[str, ...]
    broker_reachable: bool
    broker_marker: str | None = None
    broker_allowed_roles: tuple[str, ...] = ()


class BootstrapReport(BaseModel):
    """Broker-side configuration written by one bootstrap run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastores: tuple[str, ...]
    roles: tuple[str, ...]
    skipped_datastores: tuple[str, ...] = ()


class HealthStatus(BaseModel):
    """Credential authority and secrets broker readiness status payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    broker_ready: bool
    detail: str
