"""In-process secrets broker adapter for Vault's database secrets engine."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote
from uuid import uuid4

from packages.credlease_shared.http import (
    HttpClient,
    HttpClientError,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
    HttpTimeoutError,
)
from packages.credlease_shared.logging import get_logger, public_api_instrumented
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
)
from resources.adapters.secrets_broker.config import (
    RESOURCE_COMPONENT_ID,
    SecretsBrokerSettings,
)

_LOGGER = get_logger(__name__)
_ROTATION_DENIED_STATUSES = frozenset({409, 423})
_AUTH_REJECTED_STATUSES = frozenset({401, 403})
# sys/health answers 429 from a healthy standby node.
_HEALTHY_STATUSES = frozenset({200, 429})


class VaultSecretsBrokerAdapter(SecretsBrokerAdapter):
    """Secrets broker adapter speaking Vault's HTTP API over httpx."""

    def __init__(
        self,
        *,
        settings: SecretsBrokerSettings,
        client: HttpClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or HttpClient(
            base_url=settings.base_url.rstrip("/"),
            timeout_seconds=settings.timeout_seconds,
            verify=settings.verify,
        )

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._client.close()

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("role",)
    )
    def request_lease(self, *, role: str) -> IssuedCredential:
        """Issue one credential via ``GET <mount>/creds/<role>``."""
        path = self._path(self._settings.lease_path, role=role)
        try:
            body = self._client.get_json(path, headers=self._auth_headers())
        except HttpStatusError as exc:
            if exc.status_code == 404 or _is_unknown_role(exc):
                raise RoleNotFoundError(role) from None
            raise _unavailable("lease request", exc) from None
        except HttpJsonDecodeError as exc:
            raise BrokerProtocolError(f"lease response is not JSON: {exc}") from None
        except HttpRequestError as exc:
            raise _unavailable("lease request", exc) from None

        return _issued_credential(body)

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("datastore",)
    )
    def rotate_root(self, *, datastore: str) -> RootRotation:
        """Force root rotation via ``POST <mount>/rotate-root/<datastore>``."""
        path = self._path(self._settings.rotate_root_path, datastore=datastore)
        try:
            body = self._client.request_json("POST", path, headers=self._auth_headers())
        except HttpStatusError as exc:
            if exc.status_code in _ROTATION_DENIED_STATUSES:
                raise RotationDeniedError(datastore, "rotation already in progress") from None
            if exc.status_code in _AUTH_REJECTED_STATUSES:
                raise RotationDeniedError(datastore, "broker rejected credentials") from None
            if 400 <= exc.status_code < 500 and exc.status_code != 429:
                raise RotationDeniedError(
                    datastore, f"broker refused with status {exc.status_code}"
                ) from None
            raise _unavailable("root rotation", exc) from None
        except HttpJsonDecodeError as exc:
            raise BrokerProtocolError(f"rotation response is not JSON: {exc}") from None
        except HttpRequestError as exc:
            raise _unavailable("root rotation", exc) from None

        return RootRotation(datastore=datastore, generation_marker=_marker(body))

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("datastore",)
    )
    def read_rotation_status(self, *, datastore: str) -> BrokerRotationStatus:
        """Read broker config for ``datastore`` via ``GET <mount>/config/<name>``."""
        path = self._path(self._settings.datastore_config_path, datastore=datastore)
        try:
            body = self._client.get_json(path, headers=self._auth_headers())
        except HttpStatusError as exc:
            if 400 <= exc.status_code < 500 and exc.status_code != 429:
                raise RotationDeniedError(
                    datastore, f"status read refused with status {exc.status_code}"
                ) from None
            raise _unavailable("rotation status read", exc) from None
        except HttpJsonDecodeError as exc:
            raise BrokerProtocolError(f"status response is not JSON: {exc}") from None
        except HttpRequestError as exc:
            raise _unavailable("rotation status read", exc) from None

        data = _data_section(body)
        return BrokerRotationStatus(
            datastore=datastore,
            generation_marker=_marker(body),
            allowed_roles=_split_roles(data.get("allowed_roles")),
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("lease_id",)
    )
    def revoke(self, *, lease_id: str) -> bool:
        """Revoke one lease via ``PUT sys/leases/revoke``; failures are logged only."""
        if lease_id.strip() == "":
            return False
        try:
            self._client.put(
                self._settings.revoke_path,
                json={"lease_id": lease_id},
                headers=self._auth_headers(),
            )
        except HttpClientError as exc:
            _LOGGER.warning(
                "lease revocation failed: lease_id=%s error=%s", lease_id, exc
            )
            return False
        return True

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def configure_datastore(self, *, config: DatastoreConnectionConfig) -> None:
        """Write connection config via ``POST <mount>/config/<name>``."""
        path = self._path(self._settings.datastore_config_path, datastore=config.name)
        self._write(
            path,
            operation="datastore configuration",
            payload={
                "plugin_name": config.plugin_name,
                "allowed_roles": ",".join(config.allowed_roles),
                "connection_url": config.connection_url,
                "username": config.username,
                "password": config.password,
                "verify_connection": config.verify_connection,
            },
        )

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def define_role(self, *, role: RoleDefinition) -> None:
        """Write a role template via ``POST <mount>/roles/<name>``."""
        path = self._path(self._settings.role_path, name=role.name)
        self._write(
            path,
            operation="role definition",
            payload={
                "db_name": role.datastore,
                "creation_statements": list(role.creation_statements),
                "default_ttl": role.default_ttl_seconds,
                "max_ttl": role.max_ttl_seconds,
            },
        )

    def health(self) -> BrokerHealth:
        """Probe ``sys/health``; sealed or unreachable brokers report not ready."""
        try:
            response = self._client.get(self._settings.health_path, raise_for_status=False)
        except HttpRequestError as exc:
            return BrokerHealth(ready=False, detail=str(exc) or "broker unreachable")

        if response.status_code in _HEALTHY_STATUSES:
            return BrokerHealth(ready=True, detail="ok")
        return BrokerHealth(
            ready=False, detail=f"broker health returned status {response.status_code}"
        )

    def _write(self, path: str, *, operation: str, payload: Mapping[str, Any]) -> None:
        """Issue one configuration write and map failures to adapter errors."""
        try:
            self._client.post(path, json=dict(payload), headers=self._auth_headers())
        except HttpStatusError as exc:
            if 400 <= exc.status_code < 500 and exc.status_code != 429:
                raise BrokerRejectedError(
                    f"{operation} rejected with status {exc.status_code}",
                    status_code=exc.status_code,
                ) from None
            raise _unavailable(operation, exc) from None
        except HttpRequestError as exc:
            raise _unavailable(operation, exc) from None

    def _auth_headers(self) -> dict[str, str]:
        """Return the token header for one broker request."""
        header = self._settings.token_header
        token = self._settings.token
        if header.lower() == "authorization":
            return {header: f"Bearer {token}"}
        return {header: token}

    def _path(self, template: str, **values: str) -> str:
        """Render one path template with URL-quoted segment values."""
        quoted = {key: quote(value.strip(), safe="") for key, value in values.items()}
        return template.format(mount=self._settings.mount, **quoted)


def _unavailable(operation: str, exc: HttpClientError) -> BrokerUnavailableError:
    """Map a transport or server-side failure to ``BrokerUnavailableError``."""
    if isinstance(exc, HttpStatusError):
        auth_rejected = exc.status_code in _AUTH_REJECTED_STATUSES
        return BrokerUnavailableError(
            f"{operation} failed with status {exc.status_code}",
            retryable=not auth_rejected,
            status_code=exc.status_code,
        )
    timed_out = isinstance(exc, HttpTimeoutError)
    return BrokerUnavailableError(
        f"{operation} {'timed out' if timed_out else 'could not reach broker'}",
        timed_out=timed_out,
    )


def _is_unknown_role(exc: HttpStatusError) -> bool:
    # Vault answers 400 {"errors": ["unknown role: x"]} for undefined roles.
    return exc.status_code == 400 and "unknown role" in exc.response_body.lower()


def _data_section(body: object) -> Mapping[str, Any]:
    """Return Vault's nested ``data`` object, or the body itself when flat."""
    if not isinstance(body, Mapping):
        return {}
    data = body.get("data")
    if isinstance(data, Mapping):
        return data
    return body


def _issued_credential(body: object) -> IssuedCredential:
    """Build an ``IssuedCredential`` from nested or flat lease responses."""
    if not isinstance(body, Mapping):
        raise BrokerProtocolError("lease response must be a JSON object")
    data = _data_section(body)

    username = data.get("username")
    password = data.get("password")
    if not isinstance(username, str) or username == "":
        raise BrokerProtocolError("lease response is missing a username")
    if not isinstance(password, str) or password == "":
        raise BrokerProtocolError("lease response is missing a password")

    duration = body.get("lease_duration", data.get("lease_duration"))
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
        raise BrokerProtocolError("lease response has no valid lease_duration")

    lease_id = body.get("lease_id")
    return IssuedCredential(
        lease_id=lease_id if isinstance(lease_id, str) and lease_id else str(uuid4()),
        username=username,
        password=password,
        lease_duration_seconds=duration,
        renewable=bool(body.get("renewable", False)),
    )


def _marker(body: object) -> str | None:
    """Return a broker-provided generation marker when the response has one."""
    if not isinstance(body, Mapping):
        return None
    value = body.get("generation_marker", _data_section(body).get("generation_marker"))
    if value in (None, ""):
        return None
    return str(value)


def _split_roles(value: object) -> tuple[str, ...]:
    """Normalize Vault's allowed_roles (list or comma string) into a tuple."""
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = [str(item) for item in value]
    else:
        return ()
    return tuple(item.strip() for item in items if item.strip())
