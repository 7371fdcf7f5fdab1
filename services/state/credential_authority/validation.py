"""Request validation models for Credential Authority Service public API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resources.substrates.postgres import DatastoreEndpoint
from services.state.credential_authority.domain import Lease


def _strip_text(value: object) -> object:
    """Normalize surrounding whitespace for textual request fields."""
    if isinstance(value, str):
        return value.strip()
    return value


class _RoleRequest(BaseModel):
    """Base request naming one role."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str = Field(min_length=1)

    @field_validator("role", mode="before")
    @classmethod
    def _strip_role(cls, value: object) -> object:
        return _strip_text(value)


class _DatastoreRequest(BaseModel):
    """Base request naming one datastore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastore: str = Field(min_length=1)

    @field_validator("datastore", mode="before")
    @classmethod
    def _strip_datastore(cls, value: object) -> object:
        return _strip_text(value)


class AcquireLeaseRequest(_RoleRequest):
    """Validate one acquire-lease request payload."""


class CurrentLeaseRequest(_RoleRequest):
    """Validate one current-lease lookup payload."""


class RotateRootRequest(_DatastoreRequest):
    """Validate one root-rotation request payload."""


class RotationStatusRequest(_DatastoreRequest):
    """Validate one rotation-status request payload."""


class LeaseRequest(BaseModel):
    """Validate one request carrying a previously issued lease."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    lease: Lease


class ProbeRequest(LeaseRequest):
    """Validate one probe payload; ``endpoint`` defaults to the role's datastore."""

    endpoint: DatastoreEndpoint | None = None
