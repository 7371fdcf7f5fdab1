"""Pydantic settings for the secrets broker adapter resource."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.credlease_shared.config import CredleaseSettings, resolve_component_settings

RESOURCE_COMPONENT_ID = "adapter_secrets_broker"


class SecretsBrokerSettings(BaseModel):
    """Runtime settings for talking to a Vault-compatible secrets broker.

    Path templates accept ``{mount}`` plus the operation's own placeholder
    (``{role}``, ``{datastore}`` or ``{name}``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://127.0.0.1:8200"
    token: str = Field(default="", repr=False)
    token_header: str = "X-Vault-Token"
    timeout_seconds: float = Field(default=5.0, gt=0)
    verify_tls: bool = True
    ca_bundle_path: str | None = None
    mount: str = "database"
    lease_path: str = "/v1/{mount}/creds/{role}"
    rotate_root_path: str = "/v1/{mount}/rotate-root/{datastore}"
    datastore_config_path: str = "/v1/{mount}/config/{datastore}"
    role_path: str = "/v1/{mount}/roles/{name}"
    revoke_path: str = "/v1/sys/leases/revoke"
    health_path: str = "/v1/sys/health"

    @field_validator("base_url", "token_header", "mount", mode="before")
    @classmethod
    def _strip_required_text(cls, value: object) -> object:
        """Reject blank values for fields every request depends on."""
        if isinstance(value, str):
            normalized = value.strip()
            if normalized == "":
                raise ValueError("must be non-empty")
            return normalized
        return value

    @property
    def verify(self) -> bool | str:
        """Return the httpx ``verify`` argument implied by TLS settings."""
        if self.ca_bundle_path:
            return self.ca_bundle_path
        return self.verify_tls


def resolve_secrets_broker_settings(
    settings: CredleaseSettings,
) -> SecretsBrokerSettings:
    """Resolve adapter settings from ``components.adapter.secrets_broker``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=SecretsBrokerSettings,
    )
