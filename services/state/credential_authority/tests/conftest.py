"""Fakes and fixtures for Credential Authority Service tests."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import Callable

import pytest

from resources.adapters.secrets_broker import (
    BrokerHealth,
    BrokerRotationStatus,
    DatastoreConnectionConfig,
    IssuedCredential,
    RoleDefinition,
    RoleNotFoundError,
    RootRotation,
    SecretsBrokerAdapter,
)
from resources.substrates.postgres import (
    ConnectionAttemptResult,
    ConnectionOutcome,
    ConnectionValidator,
    DatastoreEndpoint,
    ProbeCredential,
)
from services.state.credential_authority.config import (
    CredentialAuthoritySettings,
    DatastoreSettings,
)
from services.state.credential_authority.domain import Role
from services.state.credential_authority.implementation import (
    DefaultCredentialAuthorityService,
)


class ManualClock:
    """Deterministic clock advanced explicitly by tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeBroker(SecretsBrokerAdapter):
    """In-memory broker that behaves like a database secrets engine.

    Issued passwords stay valid until their lease is revoked. Rotating the
    root credential leaves them untouched, as Vault does.
    """

    def __init__(self) -> None:
        self.roles = {"my-role", "reporting"}
        self.lease_duration_seconds = 3600
        self.root_rotations = 0
        self.issued = 0
        self.passwords: dict[str, str] = {}
        self.revoked: list[str] = []
        self.configured: list[DatastoreConnectionConfig] = []
        self.defined: list[RoleDefinition] = []
        self.raise_on_lease: Exception | None = None
        self.raise_on_rotate: Exception | None = None
        self.raise_on_status: Exception | None = None
        self.raise_on_write: Exception | None = None
        self.before_issue: Callable[[], None] | None = None
        self.rotate_entered = threading.Event()
        self.rotate_release: threading.Event | None = None
        self.ready = True
        self.closed = False
        self.revoke_succeeds = True

    @property
    def valid_passwords(self) -> set[str]:
        return set(self.passwords.values())

    def request_lease(self, *, role: str) -> IssuedCredential:
        if self.raise_on_lease is not None:
            raise self.raise_on_lease
        if role not in self.roles:
            raise RoleNotFoundError(role)
        if self.before_issue is not None:
            hook, self.before_issue = self.before_issue, None
            hook()
        self.issued += 1
        password = f"p{self.root_rotations}-{self.issued}"
        lease_id = f"database/creds/{role}/{self.issued}"
        self.passwords[lease_id] = password
        return IssuedCredential(
            lease_id=lease_id,
            username=f"v-{role}-{self.issued}",
            password=password,
            lease_duration_seconds=self.lease_duration_seconds,
            renewable=True,
        )

    def rotate_root(self, *, datastore: str) -> RootRotation:
        self.rotate_entered.set()
        if self.rotate_release is not None:
            self.rotate_release.wait(timeout=5)
        if self.raise_on_rotate is not None:
            raise self.raise_on_rotate
        self.root_rotations += 1
        return RootRotation(
            datastore=datastore, generation_marker=f"marker-{self.root_rotations}"
        )

    def read_rotation_status(self, *, datastore: str) -> BrokerRotationStatus:
        if self.raise_on_status is not None:
            raise self.raise_on_status
        return BrokerRotationStatus(
            datastore=datastore,
            generation_marker=f"marker-{self.root_rotations}",
            allowed_roles=tuple(sorted(self.roles)),
        )

    def revoke(self, *, lease_id: str) -> bool:
        self.revoked.append(lease_id)
        if not self.revoke_succeeds:
            return False
        self.passwords.pop(lease_id, None)
        return True

    def configure_datastore(self, *, config: DatastoreConnectionConfig) -> None:
        if self.raise_on_write is not None:
            raise self.raise_on_write
        self.configured.append(config)

    def define_role(self, *, role: RoleDefinition) -> None:
        if self.raise_on_write is not None:
            raise self.raise_on_write
        self.defined.append(role)

    def health(self) -> BrokerHealth:
        return BrokerHealth(ready=self.ready, detail="ok" if self.ready else "sealed")

    def close(self) -> None:
        self.closed = True


class FakeValidator(ConnectionValidator):
    """Validator that authenticates only passwords the broker still honors."""

    def __init__(self, broker: FakeBroker, clock: ManualClock) -> None:
        self._broker = broker
        self._clock = clock
        self.endpoints: list[DatastoreEndpoint] = []

    def connect(
        self,
        *,
        credential: ProbeCredential,
        endpoint: DatastoreEndpoint,
    ) -> ConnectionAttemptResult:
        self.endpoints.append(endpoint)
        accepted = credential.secret in self._broker.valid_passwords
        return ConnectionAttemptResult(
            outcome=(
                ConnectionOutcome.SUCCESS
                if accepted
                else ConnectionOutcome.AUTHENTICATION_FAILED
            ),
            username=credential.username,
            endpoint=endpoint.display,
            reason="" if accepted else "password authentication failed",
            attempted_at=self._clock(),
        )


def _settings(**overrides: object) -> CredentialAuthoritySettings:
    values: dict[str, object] = {
        "datastores": (
            DatastoreSettings(
                name="testdb",
                endpoint=DatastoreEndpoint(host="db", database="testdb"),
                connection_url="postgresql://{{username}}:{{password}}@db:5432/testdb",
                username="vault_root",
                password="bootstrap",
            ),
            DatastoreSettings(name="warehouse"),
        ),
        "roles": (
            Role(
                name="my-role",
                datastore="testdb",
                creation_statements=(
                    "CREATE ROLE \"{{name}}\" LOGIN PASSWORD '{{password}}';",
                ),
            ),
            Role(name="reporting", datastore="warehouse"),
        ),
    }
    values.update(overrides)
    return CredentialAuthoritySettings(**values)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def validator(broker: FakeBroker, clock: ManualClock) -> FakeValidator:
    return FakeValidator(broker, clock)


@pytest.fixture
def service(
    broker: FakeBroker, validator: FakeValidator, clock: ManualClock
) -> DefaultCredentialAuthorityService:
    return DefaultCredentialAuthorityService(
        settings=_settings(),
        broker=broker,
        validator=validator,
        clock=clock,
    )


@pytest.fixture
def make_service(
    broker: FakeBroker, validator: FakeValidator, clock: ManualClock
) -> Callable[..., DefaultCredentialAuthorityService]:
    """Return a factory building the service with settings overrides."""

    def factory(**overrides: object) -> DefaultCredentialAuthorityService:
        return DefaultCredentialAuthorityService(
            settings=_settings(**overrides),
            broker=broker,
            validator=validator,
            clock=clock,
        )

    return factory
