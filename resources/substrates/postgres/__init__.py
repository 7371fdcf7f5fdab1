"""Postgres substrate primitives for credential connection probes."""

from resources.substrates.postgres.config import (
    RESOURCE_COMPONENT_ID,
    DatastoreEndpoint,
    PostgresValidatorSettings,
    resolve_postgres_validator_settings,
)
from resources.substrates.postgres.engine import create_probe_engine
from resources.substrates.postgres.errors import classify_connection_error
from resources.substrates.postgres.results import (
    ConnectionAttemptResult,
    ConnectionOutcome,
)
from resources.substrates.postgres.validator import (
    ConnectionValidator,
    PostgresConnectionValidator,
    ProbeCredential,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "ConnectionAttemptResult",
    "ConnectionOutcome",
    "ConnectionValidator",
    "DatastoreEndpoint",
    "PostgresConnectionValidator",
    "PostgresValidatorSettings",
    "ProbeCredential",
    "classify_connection_error",
    "create_probe_engine",
    "resolve_postgres_validator_settings",
]
