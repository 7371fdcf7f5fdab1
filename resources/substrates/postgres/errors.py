"""Classification of Postgres connection failures into attempt outcomes."""

from __future__ import annotations

import re

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from resources.substrates.postgres.results import ConnectionOutcome

_AUTH_SQLSTATES = frozenset({"28P01", "28000"})
_AUTH_MARKERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"password authentication failed"), "password authentication failed"),
    (re.compile(r"role \S+ does not exist"), "role does not exist"),
    (re.compile(r"no pg_hba\.conf entry"), "no pg_hba.conf entry"),
    (re.compile(r"pg_hba\.conf rejects connection"), "pg_hba.conf rejects connection"),
    (re.compile(r"is not permitted to log in"), "role not permitted to log in"),
)
_TIMEOUT_MARKERS = ("timeout expired", "timed out", "connection timeout")
_MAX_REASON_LENGTH = 200


def classify_connection_error(exc: SQLAlchemyError) -> tuple[ConnectionOutcome, str]:
    """Map one connect/probe failure to an outcome and a short reason."""
    original = exc.orig if isinstance(exc, DBAPIError) else None
    sqlstate = getattr(original, "sqlstate", None)
    message = str(original if original is not None else exc).lower()

    if sqlstate in _AUTH_SQLSTATES:
        return ConnectionOutcome.AUTHENTICATION_FAILED, f"sqlstate {sqlstate}"
    for pattern, reason in _AUTH_MARKERS:
        if pattern.search(message):
            return ConnectionOutcome.AUTHENTICATION_FAILED, reason
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return ConnectionOutcome.TRANSPORT_FAILED, "timeout"
    return ConnectionOutcome.TRANSPORT_FAILED, _first_line(message)


def _first_line(message: str) -> str:
    line = message.strip().splitlines()[0] if message.strip() else "connection failed"
    return line[:_MAX_REASON_LENGTH]
