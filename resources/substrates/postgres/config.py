"""Configuration models for Postgres connection probes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.credlease_shared.config import CredleaseSettings, resolve_component_settings

RESOURCE_COMPONENT_ID = "substrate_postgres"

SslMode = Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"]


class DatastoreEndpoint(BaseModel):
    """Network location and libpq TLS parameters for one managed datastore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str = Field(min_length=1)
    port: int = Field(default=5432, gt=0, le=65535)
    database: str = Field(min_length=1)
    sslmode: SslMode = "prefer"
    sslrootcert: str | None = None
    sslcert: str | None = None
    sslkey: str | None = None

    @field_validator("host", "database", mode="before")
    @classmethod
    def _strip_text(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def display(self) -> str:
        """Return ``host:port/database`` for logs and attempt results."""
        return f"{self.host}:{self.port}/{self.database}"

    def tls_args(self) -> dict[str, str]:
        """Return libpq TLS connect arguments that are set on this endpoint."""
        args: dict[str, str] = {"sslmode": self.sslmode}
        for name in ("sslrootcert", "sslcert", "sslkey"):
            value = getattr(self, name)
            if value:
                args[name] = value
        return args


class PostgresValidatorSettings(BaseModel):
    """Runtime settings for ``PostgresConnectionValidator``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    driver: str = "postgresql+psycopg"
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    statement_timeout_seconds: float = Field(default=2.0, gt=0)
    probe_query: str = Field(default="SELECT 1", min_length=1)


def resolve_postgres_validator_settings(
    settings: CredleaseSettings,
) -> PostgresValidatorSettings:
    """Resolve validator settings from ``components.substrate.postgres``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=PostgresValidatorSettings,
    )
