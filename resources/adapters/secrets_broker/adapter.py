"""Transport-agnostic secrets broker adapter protocol, errors and DTOs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class SecretsBrokerError(Exception):
    """Base exception for secrets broker adapter failures."""

    retryable: bool = False


class BrokerUnavailableError(SecretsBrokerError):
    """Broker unreachable, timed out, overloaded or refusing our token.

    Transient unless the broker rejected authentication, in which case
    ``retryable`` is ``False``.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code
        self.timed_out = timed_out


class RoleNotFoundError(SecretsBrokerError):
    """Broker has no role with the requested name."""

    def __init__(self, role: str) -> None:
        super().__init__(f"secrets broker has no role named {role!r}")
        self.role = role


class RotationDeniedError(SecretsBrokerError):
    """Broker refused a root rotation (in progress, locked or unauthenticated)."""

    def __init__(self, datastore: str, reason: str) -> None:
        super().__init__(f"root rotation denied for {datastore!r}: {reason}")
        self.datastore = datastore
        self.reason = reason


class BrokerRejectedError(SecretsBrokerError):
    """Broker rejected a configuration write with a client-side status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class BrokerProtocolError(SecretsBrokerError):
    """Broker answered with a body that does not match the expected shape."""


class IssuedCredential(BaseModel):
    """One dynamically issued database credential as returned by the broker."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    lease_id: str
    username: str
    password: str = Field(repr=False)
    lease_duration_seconds: int = Field(ge=0)
    renewable: bool = False


class RootRotation(BaseModel):
    """Broker acknowledgement of a completed root rotation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastore: str
    generation_marker: str | None = None


class BrokerRotationStatus(BaseModel):
    """Broker-side view of one datastore's connection configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastore: str
    generation_marker: str | None = None
    allowed_roles: tuple[str, ...] = ()


class DatastoreConnectionConfig(BaseModel):
    """Broker-side connection configuration for one managed datastore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    plugin_name: str = "postgresql-database-plugin"
    connection_url: str = Field(min_length=1)
    allowed_roles: tuple[str, ...] = ()
    username: str = Field(min_length=1)
    password: str = Field(repr=False)
    verify_connection: bool = True


class RoleDefinition(BaseModel):
    """Broker-side template for credentials issued under one role."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    datastore: str = Field(min_length=1)
    creation_statements: tuple[str, ...] = ()
    default_ttl_seconds: int = Field(default=3600, gt=0)
    max_ttl_seconds: int = Field(default=86400, gt=0)


class BrokerHealth(BaseModel):
    """Readiness payload for the secrets broker dependency."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


@runtime_checkable
class SecretsBrokerAdapter(Protocol):
    """Protocol for the external secrets broker boundary.

    Implementations hold no lease state; every call is one bounded remote
    round trip.
    """

    def request_lease(self, *, role: str) -> IssuedCredential:
        """Issue one credential for ``role``."""

    def rotate_root(self, *, datastore: str) -> RootRotation:
        """Force rotation of the broker's root credential for ``datastore``."""

    def read_rotation_status(self, *, datastore: str) -> BrokerRotationStatus:
        """Read broker-side configuration/rotation status for ``datastore``."""

    def revoke(self, *, lease_id: str) -> bool:
        """Revoke one lease; never raises, returns whether it succeeded."""

    def configure_datastore(self, *, config: DatastoreConnectionConfig) -> None:
        """Write broker-side connection configuration for one datastore."""

    def define_role(self, *, role: RoleDefinition) -> None:
        """Write broker-side role template."""

    def health(self) -> BrokerHealth:
        """Return broker readiness; never raises."""

    def close(self) -> None:
        """Release transport resources held by the adapter."""
