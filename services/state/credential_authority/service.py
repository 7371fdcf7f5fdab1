"""Authoritative in-process Python API for Credential Authority Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.credlease_shared.config import CredleaseSettings
from packages.credlease_shared.envelope import Envelope, EnvelopeMeta
from resources.adapters.secrets_broker import SecretsBrokerAdapter
from resources.substrates.postgres import ConnectionValidator, DatastoreEndpoint
from services.state.credential_authority.domain import (
    BootstrapReport,
    ConnectionAttemptResult,
    HealthStatus,
    Lease,
    LeaseValidity,
    RotationEpoch,
    RotationStatus,
)


class CredentialAuthorityService(ABC):
    """Public API for leased credentials and root rotation.

    Every method returns an ``Envelope``; domain and dependency failures are
    reported as structured errors rather than raised.
    """

    @abstractmethod
    def acquire_lease(self, *, meta: EnvelopeMeta, role: str) -> Envelope[Lease]:
        """Obtain a credential for ``role`` tagged with the current generation."""

    @abstractmethod
    def rotate_root(
        self, *, meta: EnvelopeMeta, datastore: str
    ) -> Envelope[RotationEpoch]:
        """Rotate the root credential of ``datastore``; old leases go stale and are revoked."""

    @abstractmethod
    def validate(self, *, meta: EnvelopeMeta, lease: Lease) -> Envelope[LeaseValidity]:
        """Classify ``lease`` as fresh, stale or not found without network I/O."""

    @abstractmethod
    def current_lease(
        self, *, meta: EnvelopeMeta, role: str
    ) -> Envelope[Lease | None]:
        """Return the most recent fresh lease held for ``role``."""

    @abstractmethod
    def probe(
        self,
        *,
        meta: EnvelopeMeta,
        lease: Lease,
        endpoint: DatastoreEndpoint | None = None,
    ) -> Envelope[ConnectionAttemptResult]:
        """Attempt a real connection with ``lease`` and report the outcome."""

    @abstractmethod
    def rotation_status(
        self, *, meta: EnvelopeMeta, datastore: str
    ) -> Envelope[RotationStatus]:
        """Return local epoch, coordinator state and broker view for ``datastore``."""

    @abstractmethod
    def revoke_lease(self, *, meta: EnvelopeMeta, lease: Lease) -> Envelope[bool]:
        """Revoke ``lease`` at the broker (best effort) and mark it stale locally."""

    @abstractmethod
    def bootstrap(self, *, meta: EnvelopeMeta) -> Envelope[BootstrapReport]:
        """Write configured datastore connections and roles to the broker."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return service and secrets broker readiness."""

    def close(self) -> None:
        """Release broker resources held by the service."""


def build_credential_authority_service(
    *,
    settings: CredleaseSettings,
    broker: SecretsBrokerAdapter | None = None,
    validator: ConnectionValidator | None = None,
) -> CredentialAuthorityService:
    """Build default Credential Authority implementation from typed settings."""
    from resources.adapters.secrets_broker import (
        VaultSecretsBrokerAdapter,
        resolve_secrets_broker_settings,
    )
    from resources.substrates.postgres import (
        PostgresConnectionValidator,
        resolve_postgres_validator_settings,
    )
    from services.state.credential_authority.config import (
        resolve_credential_authority_settings,
    )
    from services.state.credential_authority.implementation import (
        DefaultCredentialAuthorityService,
    )

    return DefaultCredentialAuthorityService(
        settings=resolve_credential_authority_settings(settings),
        broker=broker
        or VaultSecretsBrokerAdapter(
            settings=resolve_secrets_broker_settings(settings)
        ),
        validator=validator
        or PostgresConnectionValidator(
            settings=resolve_postgres_validator_settings(settings)
        ),
    )
