"""Connection validator confirming whether a credential authenticates."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable, Protocol

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from packages.credlease_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.substrates.postgres.config import (
    RESOURCE_COMPONENT_ID,
    DatastoreEndpoint,
    PostgresValidatorSettings,
)
from resources.substrates.postgres.engine import create_probe_engine
from resources.substrates.postgres.errors import classify_connection_error
from resources.substrates.postgres.results import (
    ConnectionAttemptResult,
    ConnectionOutcome,
)

_LOGGER = get_logger(__name__)

EngineFactory = Callable[..., Engine]


class ProbeCredential(Protocol):
    """Any credential exposing a username and secret, such as a lease."""

    @property
    def username(self) -> str: ...

    @property
    def secret(self) -> str: ...


class ConnectionValidator(Protocol):
    """Protocol for confirming a credential against a live datastore."""

    def connect(
        self,
        *,
        credential: ProbeCredential,
        endpoint: DatastoreEndpoint,
    ) -> ConnectionAttemptResult:
        """Attempt one connection; failures are returned, never raised."""


class PostgresConnectionValidator(ConnectionValidator):
    """Attempt one real connection and classify how it ended.

    Connection failures are returned as ``ConnectionAttemptResult`` values,
    never raised.
    """

    def __init__(
        self,
        *,
        settings: PostgresValidatorSettings | None = None,
        engine_factory: EngineFactory = create_probe_engine,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or PostgresValidatorSettings()
        self._engine_factory = engine_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def connect(
        self,
        *,
        credential: ProbeCredential,
        endpoint: DatastoreEndpoint,
    ) -> ConnectionAttemptResult:
        """Open a connection with ``credential`` and run the probe query."""
        attempted_at = self._clock()
        engine = None
        try:
            engine = self._engine_factory(
                username=credential.username,
                password=credential.secret,
                endpoint=endpoint,
                settings=self._settings,
            )
            with engine.connect() as conn:
                conn.execute(
                    text("SELECT set_config('statement_timeout', :timeout_value, false)"),
                    {"timeout_value": f"{self._statement_timeout_ms()}ms"},
                )
                conn.execute(text(self._settings.probe_query))
        except SQLAlchemyError as exc:
            outcome, reason = classify_connection_error(exc)
            with log_context({fields.OUTCOME: outcome.value}):
                _LOGGER.info(
                    "connection attempt failed: endpoint=%s username=%s reason=%s",
                    endpoint.display,
                    credential.username,
                    reason,
                )
            return self._result(
                outcome,
                credential=credential,
                endpoint=endpoint,
                reason=reason,
                attempted_at=attempted_at,
            )
        finally:
            if engine is not None:
                engine.dispose()

        return self._result(
            ConnectionOutcome.SUCCESS,
            credential=credential,
            endpoint=endpoint,
            reason="",
            attempted_at=attempted_at,
        )

    def _statement_timeout_ms(self) -> int:
        return max(1, int(self._settings.statement_timeout_seconds * 1000))

    @staticmethod
    def _result(
        outcome: ConnectionOutcome,
        *,
        credential: ProbeCredential,
        endpoint: DatastoreEndpoint,
        reason: str,
        attempted_at: datetime,
    ) -> ConnectionAttemptResult:
        return ConnectionAttemptResult(
            outcome=outcome,
            username=credential.username,
            endpoint=endpoint.display,
            reason=reason,
            attempted_at=attempted_at,
        )
