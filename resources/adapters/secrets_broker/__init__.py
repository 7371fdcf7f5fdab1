"""Secrets broker adapter resource exports."""

from resources.adapters.secrets_broker.adapter import (
    BrokerHealth,
    BrokerProtocolError,
    BrokerRejectedError,
    BrokerRotationStatus,
    BrokerUnavailableError,
    DatastoreConnectionConfig,
    IssuedCredential,
    RoleDefinition,
    RoleNotFoundError,
    RootRotation,
    RotationDeniedError,
    SecretsBrokerAdapter,
    SecretsBrokerError,
)
from resources.adapters.secrets_broker.config import (
    RESOURCE_COMPONENT_ID,
    SecretsBrokerSettings,
    resolve_secrets_broker_settings,
)
from resources.adapters.secrets_broker.vault_adapter import VaultSecretsBrokerAdapter

__all__ = [
    "BrokerHealth",
    "BrokerProtocolError",
    "BrokerRejectedError",
    "BrokerRotationStatus",
    "BrokerUnavailableError",
    "DatastoreConnectionConfig",
    "IssuedCredential",
    "RESOURCE_COMPONENT_ID",
    "RoleDefinition",
    "RoleNotFoundError",
    "RootRotation",
    "RotationDeniedError",
    "SecretsBrokerAdapter",
    "SecretsBrokerError",
    "SecretsBrokerSettings",
    "VaultSecretsBrokerAdapter",
    "resolve_secrets_broker_settings",
]
