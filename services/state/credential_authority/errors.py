"""Credential authority error codes, exceptions and broker error mapping."""

from __future__ import annotations

from packages.credlease_shared.errors import (
    ErrorDetail,
    conflict_error,
    dependency_error,
    not_found_error,
    policy_error,
)
from resources.adapters.secrets_broker import (
    BrokerProtocolError,
    BrokerRejectedError,
    BrokerUnavailableError,
    RoleNotFoundError,
    RotationDeniedError,
    SecretsBrokerError,
)

BROKER_UNAVAILABLE = "BROKER_UNAVAILABLE"
BROKER_PROTOCOL_ERROR = "BROKER_PROTOCOL_ERROR"
BROKER_REJECTED = "BROKER_REJECTED"
ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
DATASTORE_NOT_FOUND = "DATASTORE_NOT_FOUND"
ROTATION_DENIED = "ROTATION_DENIED"
ROTATION_IN_PROGRESS = "ROTATION_IN_PROGRESS"
LEASE_SUPERSEDED = "LEASE_SUPERSEDED"
PROBE_FAILED = "PROBE_FAILED"


class CredentialAuthorityError(Exception):
    """Base exception for in-process credential authority failures."""


class DatastoreNotFoundError(CredentialAuthorityError):
    """No datastore with the requested name is managed here."""

    def __init__(self, datastore: str) -> None:
        super().__init__(f"no managed datastore named {datastore!r}")
        self.datastore = datastore


class RotationInProgressError(CredentialAuthorityError):
    """A rotation for the datastore is already running; requests are not queued."""

    def __init__(self, datastore: str) -> None:
        super().__init__(f"root rotation already in progress for {datastore!r}")
        self.datastore = datastore


def role_not_found(role: str) -> ErrorDetail:
    return not_found_error(
        f"no role named {role!r}", code=ROLE_NOT_FOUND, metadata={"role": role}
    )


def datastore_not_found(datastore: str) -> ErrorDetail:
    return not_found_error(
        f"no managed datastore named {datastore!r}",
        code=DATASTORE_NOT_FOUND,
        metadata={"datastore": datastore},
    )


def rotation_in_progress(datastore: str) -> ErrorDetail:
    return conflict_error(
        f"root rotation already in progress for {datastore!r}",
        code=ROTATION_IN_PROGRESS,
        metadata={"datastore": datastore},
    )


def lease_superseded(role: str, attempts: int) -> ErrorDetail:
    return conflict_error(
        f"lease for {role!r} was superseded by rotation on every attempt",
        code=LEASE_SUPERSEDED,
        retryable=True,
        metadata={"role": role, "attempts": str(attempts)},
    )


def broker_error_detail(exc: SecretsBrokerError) -> ErrorDetail:
    """Map one secrets broker adapter exception to an envelope error."""
    if isinstance(exc, RoleNotFoundError):
        return role_not_found(exc.role)
    if isinstance(exc, RotationDeniedError):
        return policy_error(
            str(exc),
            code=ROTATION_DENIED,
            metadata={"datastore": exc.datastore, "reason": exc.reason},
        )
    if isinstance(exc, BrokerRejectedError):
        return policy_error(
            str(exc),
            code=BROKER_REJECTED,
            metadata={"status_code": str(exc.status_code)},
        )
    if isinstance(exc, BrokerProtocolError):
        return dependency_error(
            str(exc),
            code=BROKER_PROTOCOL_ERROR,
            retryable=False,
            metadata={"resource": "adapter_secrets_broker"},
        )
    metadata = {"resource": "adapter_secrets_broker"}
    if isinstance(exc, BrokerUnavailableError):
        metadata["timed_out"] = str(exc.timed_out).lower()
        if exc.status_code is not None:
            metadata["status_code"] = str(exc.status_code)
    return dependency_error(
        str(exc),
        code=BROKER_UNAVAILABLE,
        retryable=exc.retryable,
        metadata=metadata,
    )
