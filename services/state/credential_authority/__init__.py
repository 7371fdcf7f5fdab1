"""Credential Authority Service native package exports."""

from packages.credlease_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.credlease_shared.errors import ErrorCategory, ErrorDetail
from services.state.credential_authority.config import (
    SERVICE_COMPONENT_ID,
    CredentialAuthoritySettings,
    DatastoreSettings,
    resolve_credential_authority_settings,
)
from services.state.credential_authority.domain import (
    BootstrapReport,
    ConnectionAttemptResult,
    ConnectionOutcome,
    HealthStatus,
    Lease,
    LeaseValidity,
    Role,
    RotationEpoch,
    RotationState,
    RotationStatus,
)
from services.state.credential_authority.implementation import (
    DefaultCredentialAuthorityService,
)
from services.state.credential_authority.lease_store import LeaseStore
from services.state.credential_authority.rotation import RotationCoordinator
from services.state.credential_authority.service import (
    CredentialAuthorityService,
    build_credential_authority_service,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "BootstrapReport",
    "ConnectionAttemptResult",
    "ConnectionOutcome",
    "CredentialAuthorityService",
    "CredentialAuthoritySettings",
    "DatastoreSettings",
    "DefaultCredentialAuthorityService",
    "HealthStatus",
    "Lease",
    "LeaseStore",
    "LeaseValidity",
    "Role",
    "RotationCoordinator",
    "RotationEpoch",
    "RotationState",
    "RotationStatus",
    "build_credential_authority_service",
    "resolve_credential_authority_settings",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
]
