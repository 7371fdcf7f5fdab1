"""SQLAlchemy engine construction for single-use credential probes."""

from __future__ import annotations

import math

from sqlalchemy import URL, Engine, create_engine
from sqlalchemy.pool import NullPool

from resources.substrates.postgres.config import (
    DatastoreEndpoint,
    PostgresValidatorSettings,
)


def create_probe_engine(
    *,
    username: str,
    password: str,
    endpoint: DatastoreEndpoint,
    settings: PostgresValidatorSettings,
) -> Engine:
    """Construct an unpooled psycopg engine bound to one credential."""
    url = URL.create(
        settings.driver,
        username=username,
        password=password,
        host=endpoint.host,
        port=endpoint.port,
        database=endpoint.database,
    )
    connect_args: dict[str, object] = {
        # libpq only accepts whole seconds here.
        "connect_timeout": max(1, math.ceil(settings.connect_timeout_seconds)),
        **endpoint.tls_args(),
    }
    return create_engine(url, poolclass=NullPool, connect_args=connect_args)
