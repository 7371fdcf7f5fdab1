"""Tests for Postgres probe configuration and engine wiring."""

from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlalchemy.pool import NullPool

from resources.substrates.postgres.config import (
    DatastoreEndpoint,
    PostgresValidatorSettings,
)
from resources.substrates.postgres.engine import create_probe_engine


def test_endpoint_defaults_to_prefer_sslmode_and_standard_port() -> None:
    endpoint = DatastoreEndpoint(host="db", database="testdb")

    assert endpoint.port == 5432
    assert endpoint.sslmode == "prefer"
    assert endpoint.display == "db:5432/testdb"
    assert endpoint.tls_args() == {"sslmode": "prefer"}


def test_endpoint_rejects_unknown_sslmode() -> None:
    with pytest.raises(ValidationError):
        DatastoreEndpoint(host="db", database="testdb", sslmode="sometimes")


def test_endpoint_tls_args_include_only_configured_files() -> None:
    endpoint = DatastoreEndpoint(
        host="db",
        database="testdb",
        sslmode="verify-full",
        sslrootcert="/certs/ca.crt",
        sslkey="/certs/client.key",
    )

    assert endpoint.tls_args() == {
        "sslmode": "verify-full",
        "sslrootcert": "/certs/ca.crt",
        "sslkey": "/certs/client.key",
    }


def test_probe_engine_is_unpooled_and_bounded(monkeypatch) -> None:
    """Engine builder should pass NullPool, timeout and TLS args through."""
    captured: dict[str, object] = {}

    def fake_create_engine(url: object, **kwargs: object) -> object:
        captured["url"] = url
        captured.update(kwargs)
        return object()

    import resources.substrates.postgres.engine as engine_module

    monkeypatch.setattr(engine_module, "create_engine", fake_create_engine)

    create_probe_engine(
        username="v-app-ro-1",
        password="p@ss/word",
        endpoint=DatastoreEndpoint(
            host="db", port=6543, database="testdb", sslmode="require"
        ),
        settings=PostgresValidatorSettings(connect_timeout_seconds=2.5),
    )

    url = captured["url"]
    assert captured["poolclass"] is NullPool
    assert captured["connect_args"] == {"connect_timeout": 3, "sslmode": "require"}
    assert url.drivername == "postgresql+psycopg"
    assert url.username == "v-app-ro-1"
    assert url.password == "p@ss/word"
    assert url.port == 6543
