"""Real-provider rotation tests against a live secrets broker and Postgres.

Skipped unless ``CREDLEASE_RUN_INTEGRATION_REAL`` is enabled.
"""

from __future__ import annotations

import threading

from packages.credlease_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from resources.adapters.secrets_broker import RootRotation, SecretsBrokerAdapter
from resources.substrates.postgres import ConnectionOutcome
from services.state.credential_authority import build_credential_authority_service
from services.state.credential_authority.domain import LeaseValidity
from services.state.credential_authority.errors import ROTATION_IN_PROGRESS
from tests.integration.helpers import StaticCredential


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="integration", principal="operator")


def test_rotated_root_credential_is_rejected_and_new_lease_connects(
    live_service, managed_datastore, managed_role, postgres_validator
) -> None:
    """Root password stops authenticating once the broker rotates it."""
    bootstrap = live_service.bootstrap(meta=_meta())
    assert bootstrap.ok is True, bootstrap.errors
    assert managed_datastore.name in bootstrap.value.datastores

    old = live_service.acquire_lease(meta=_meta(), role=managed_role.name).value
    assert old is not None
    root = StaticCredential(managed_datastore.username, managed_datastore.password)
    before = postgres_validator.connect(credential=root, endpoint=managed_datastore.endpoint)
    assert before.outcome == ConnectionOutcome.SUCCESS

    rotated = live_service.rotate_root(meta=_meta(), datastore=managed_datastore.name)
    assert rotated.ok is True, rotated.errors
    assert rotated.value.generation == old.generation + 1

    after = postgres_validator.connect(credential=root, endpoint=managed_datastore.endpoint)
    assert after.outcome == ConnectionOutcome.AUTHENTICATION_FAILED
    assert live_service.validate(meta=_meta(), lease=old).value == LeaseValidity.STALE
    old_attempt = live_service.probe(meta=_meta(), lease=old).value
    assert old_attempt.outcome == ConnectionOutcome.AUTHENTICATION_FAILED

    fresh = live_service.acquire_lease(meta=_meta(), role=managed_role.name).value
    assert fresh.generation == rotated.value.generation
    assert fresh.secret != old.secret
    attempt = live_service.probe(meta=_meta(), lease=fresh).value
    assert attempt.outcome == ConnectionOutcome.SUCCESS


class _HeldRotationBroker:
    """Live broker whose root rotation waits until the test releases it."""

    def __init__(self, broker: SecretsBrokerAdapter) -> None:
        self._broker = broker
        self.entered = threading.Event()
        self.release = threading.Event()

    def __getattr__(self, name: str):
        return getattr(self._broker, name)

    def rotate_root(self, *, datastore: str) -> RootRotation:
        self.entered.set()
        self.release.wait(timeout=30)
        return self._broker.rotate_root(datastore=datastore)


def test_concurrent_live_rotations_admit_exactly_one(
    env_settings, vault_adapter, postgres_validator, managed_datastore
) -> None:
    """A second rotation is refused while the first is held at the broker."""
    held = _HeldRotationBroker(vault_adapter)
    service = build_credential_authority_service(
        settings=env_settings, broker=held, validator=postgres_validator
    )
    results = []

    first = threading.Thread(
        target=lambda: results.append(
            service.rotate_root(meta=_meta(), datastore=managed_datastore.name)
        )
    )
    first.start()
    assert held.entered.wait(timeout=10)

    second = service.rotate_root(meta=_meta(), datastore=managed_datastore.name)
    held.release.set()
    first.join(timeout=60)

    assert second.error_codes == [ROTATION_IN_PROGRESS]
    assert len(results) == 1
    assert results[0].ok is True, results[0].errors
    assert results[0].value.generation == 1
