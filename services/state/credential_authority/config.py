"""Pydantic settings for Credential Authority Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.credlease_shared.config import CredleaseSettings, resolve_component_settings
from resources.substrates.postgres import DatastoreEndpoint
from services.state.credential_authority.domain import Role

SERVICE_COMPONENT_ID = "service_credential_authority"


class DatastoreSettings(BaseModel):
    """One managed datastore: probe endpoint plus broker bootstrap connection.

    ``connection_url`` is the broker-side template (for example
    ``postgresql://{{username}}:{{password}}@db:5432/app``); a datastore
    without one is skipped by bootstrap.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    endpoint: DatastoreEndpoint | None = None
    plugin_name: str = "postgresql-database-plugin"
    connection_url: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    verify_connection: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class CredentialAuthoritySettings(BaseModel):
    """Credential Authority Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    datastores: tuple[DatastoreSettings, ...] = ()
    roles: tuple[Role, ...] = ()
    acquire_attempts: int = Field(default=3, ge=1)
    retained_leases_per_role: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _validate_topology(self) -> "CredentialAuthoritySettings":
        """Require unique names and roles bound to declared datastores."""
        datastore_names = [item.name for item in self.datastores]
        if len(set(datastore_names)) != len(datastore_names):
            raise ValueError("datastores must have unique names")
        role_names = [item.name for item in self.roles]
        if len(set(role_names)) != len(role_names):
            raise ValueError("roles must have unique names")
        for role in self.roles:
            if role.datastore not in datastore_names:
                raise ValueError(
                    f"role {role.name!r} references unknown datastore {role.datastore!r}"
                )
        return self

    def datastore(self, name: str) -> DatastoreSettings | None:
        for item in self.datastores:
            if item.name == name:
                return item
        return None


def resolve_credential_authority_settings(
    settings: CredleaseSettings,
) -> CredentialAuthoritySettings:
    """Resolve service settings from ``components.service.credential_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=CredentialAuthoritySettings,
    )
