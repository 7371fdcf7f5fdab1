"""Shared fixtures for real-provider integration test modules.

Tests read the normal credlease configuration (``$CREDLEASE_CONFIG_PATH``)
and only run when ``CREDLEASE_RUN_INTEGRATION_REAL`` is enabled. The first
datastore carrying both a probe endpoint and bootstrap credentials is used;
its root credential is rotated, so point the config at disposable services.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from packages.credlease_shared.config import CredleaseSettings, load_settings
from resources.adapters.secrets_broker import (
    VaultSecretsBrokerAdapter,
    resolve_secrets_broker_settings,
)
from resources.substrates.postgres import (
    PostgresConnectionValidator,
    resolve_postgres_validator_settings,
)
from services.state.credential_authority import (
    CredentialAuthorityService,
    build_credential_authority_service,
)
from services.state.credential_authority.config import (
    DatastoreSettings,
    resolve_credential_authority_settings,
)
from services.state.credential_authority.domain import Role
from tests.integration.helpers import real_provider_tests_enabled


@pytest.fixture(scope="session")
def env_settings() -> CredleaseSettings:
    """Return loaded settings, skipping unless real providers are enabled."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")
    return load_settings()


@pytest.fixture(scope="session")
def managed_datastore(env_settings: CredleaseSettings) -> DatastoreSettings:
    """Return the first datastore usable for an end-to-end rotation."""
    service_settings = resolve_credential_authority_settings(env_settings)
    for datastore in service_settings.datastores:
        if (
            datastore.endpoint is not None
            and datastore.connection_url
            and datastore.username
            and datastore.password
        ):
            return datastore
    pytest.skip("no datastore configured with endpoint and bootstrap credentials")


@pytest.fixture(scope="session")
def managed_role(env_settings: CredleaseSettings, managed_datastore: DatastoreSettings) -> Role:
    """Return the first role bound to the managed datastore."""
    service_settings = resolve_credential_authority_settings(env_settings)
    for role in service_settings.roles:
        if role.datastore == managed_datastore.name:
            return role
    pytest.skip(f"no role configured for datastore {managed_datastore.name}")


@pytest.fixture(scope="session")
def vault_adapter(env_settings: CredleaseSettings) -> Iterator[VaultSecretsBrokerAdapter]:
    """Return a live broker adapter or skip when the broker is not ready."""
    adapter = VaultSecretsBrokerAdapter(settings=resolve_secrets_broker_settings(env_settings))
    health = adapter.health()
    if not health.ready:
        adapter.close()
        pytest.skip(f"secrets broker unavailable for integration tests: {health.detail}")
    yield adapter
    adapter.close()


@pytest.fixture(scope="session")
def postgres_validator(env_settings: CredleaseSettings) -> PostgresConnectionValidator:
    return PostgresConnectionValidator(
        settings=resolve_postgres_validator_settings(env_settings)
    )


@pytest.fixture(scope="function")
def live_service(
    env_settings: CredleaseSettings,
    vault_adapter: VaultSecretsBrokerAdapter,
    postgres_validator: PostgresConnectionValidator,
) -> CredentialAuthorityService:
    """Return a fresh service instance over the live broker and datastore."""
    return build_credential_authority_service(
        settings=env_settings,
        broker=vault_adapter,
        validator=postgres_validator,
    )
