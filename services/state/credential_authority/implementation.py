"""Concrete Credential Authority Service implementation."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from packages.credlease_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.credlease_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    validation_error,
)
from packages.credlease_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.adapters.secrets_broker import (
    DatastoreConnectionConfig,
    RoleDefinition,
    SecretsBrokerAdapter,
    SecretsBrokerError,
)
from resources.substrates.postgres import (
    RESOURCE_COMPONENT_ID as POSTGRES_COMPONENT_ID,
)
from resources.substrates.postgres import ConnectionValidator, DatastoreEndpoint
from services.state.credential_authority.config import (
    SERVICE_COMPONENT_ID,
    CredentialAuthoritySettings,
)
from services.state.credential_authority.domain import (
    BootstrapReport,
    ConnectionAttemptResult,
    HealthStatus,
    Lease,
    LeaseValidity,
    RotationEpoch,
    RotationStatus,
)
from services.state.credential_authority.errors import (
    PROBE_FAILED,
    DatastoreNotFoundError,
    RotationInProgressError,
    broker_error_detail,
    datastore_not_found,
    lease_superseded,
    role_not_found,
    rotation_in_progress,
)
from services.state.credential_authority.lease_store import LeaseStore
from services.state.credential_authority.rotation import RotationCoordinator
from services.state.credential_authority.service import CredentialAuthorityService
from services.state.credential_authority.validation import (
    AcquireLeaseRequest,
    CurrentLeaseRequest,
    LeaseRequest,
    ProbeRequest,
    RotateRootRequest,
    RotationStatusRequest,
)

_LOGGER = get_logger(__name__)


class DefaultCredentialAuthorityService(CredentialAuthorityService):
    """Default implementation over a secrets broker and a connection validator."""

    def __init__(
        self,
        *,
        settings: CredentialAuthoritySettings,
        broker: SecretsBrokerAdapter,
        validator: ConnectionValidator,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._broker = broker
        self._validator = validator
        self._clock = clock or (lambda: datetime.now(UTC))
        self._store = LeaseStore(
            roles=settings.roles,
            datastores=[item.name for item in settings.datastores],
            retained_leases_per_role=settings.retained_leases_per_role,
            clock=self._clock,
        )
        self._coordinator = RotationCoordinator(
            store=self._store, broker=broker, clock=self._clock
        )

    @property
    def store(self) -> LeaseStore:
        return self._store

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("role",),
    )
    def acquire_lease(self, *, meta: EnvelopeMeta, role: str) -> Envelope[Lease]:
        """Obtain a credential tagged with the generation current at commit time.

        The broker call runs without any lock held. If a rotation commits while
        it is in flight, the fetched credential is revoked and the request is
        retried up to ``acquire_attempts`` times.
        """
        request, errors = self._validate_request(
            meta=meta, model=AcquireLeaseRequest, payload={"role": role}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, AcquireLeaseRequest)

        definition = self._store.role(request.role)
        if definition is None:
            return failure(meta=meta, errors=[role_not_found(request.role)])

        attempts = self._settings.acquire_attempts
        for attempt in range(1, attempts + 1):
            generation = self._store.current_epoch(definition.datastore).generation
            issued_at = self._clock()
            try:
                issued = self._broker.request_lease(role=request.role)
            except SecretsBrokerError as exc:
                return self._broker_failure(
                    meta=meta, operation="acquire_lease", exc=exc
                )

            lease = Lease(
                lease_id=issued.lease_id,
                role=request.role,
                username=issued.username,
                secret=issued.password,
                issued_at=issued_at,
                lease_duration_seconds=issued.lease_duration_seconds,
                generation=generation,
                renewable=issued.renewable,
            )
            if self._store.put_if_generation(lease):
                return success(meta=meta, payload=lease)

            with log_context(
                {
                    fields.ROLE: request.role,
                    fields.LEASE_ID: lease.lease_id,
                    fields.GENERATION: generation,
                }
            ):
                _LOGGER.info(
                    "lease superseded by rotation during issue: attempt=%s/%s",
                    attempt,
                    attempts,
                )
            self._broker.revoke(lease_id=lease.lease_id)

        return failure(meta=meta, errors=[lease_superseded(request.role, attempts)])

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("datastore",),
    )
    def rotate_root(
        self, *, meta: EnvelopeMeta, datastore: str
    ) -> Envelope[RotationEpoch]:
        """Rotate the root credential; does not re-acquire any lease."""
        request, errors = self._validate_request(
            meta=meta, model=RotateRootRequest, payload={"datastore": datastore}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RotateRootRequest)

        try:
            epoch = self._coordinator.rotate(request.datastore)
        except DatastoreNotFoundError:
            return failure(meta=meta, errors=[datastore_not_found(request.datastore)])
        except RotationInProgressError:
            return failure(meta=meta, errors=[rotation_in_progress(request.datastore)])
        except SecretsBrokerError as exc:
            return self._broker_failure(meta=meta, operation="rotate_root", exc=exc)
        return success(meta=meta, payload=epoch)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("lease",),
    )
    def validate(self, *, meta: EnvelopeMeta, lease: Lease) -> Envelope[LeaseValidity]:
        """Classify ``lease`` from local state only."""
        request, errors = self._validate_request(
            meta=meta, model=LeaseRequest, payload={"lease": lease}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, LeaseRequest)
        return success(meta=meta, payload=self._store.validity(request.lease))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("role",),
    )
    def current_lease(
        self, *, meta: EnvelopeMeta, role: str
    ) -> Envelope[Lease | None]:
        """Return the most recent lease for ``role`` that is still fresh."""
        request, errors = self._validate_request(
            meta=meta, model=CurrentLeaseRequest, payload={"role": role}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, CurrentLeaseRequest)

        if self._store.role(request.role) is None:
            return failure(meta=meta, errors=[role_not_found(request.role)])
        return success(meta=meta, payload=self._store.get(request.role))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("lease",),
    )
    def probe(
        self,
        *,
        meta: EnvelopeMeta,
        lease: Lease,
        endpoint: DatastoreEndpoint | None = None,
    ) -> Envelope[ConnectionAttemptResult]:
        """Confirm over the network whether ``lease`` still authenticates."""
        request, errors = self._validate_request(
            meta=meta, model=ProbeRequest, payload={"lease": lease, "endpoint": endpoint}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, ProbeRequest)

        resolved = request.endpoint
        if resolved is None:
            definition = self._store.role(request.lease.role)
            if definition is None:
                return failure(meta=meta, errors=[role_not_found(request.lease.role)])
            datastore = self._settings.datastore(definition.datastore)
            resolved = datastore.endpoint if datastore is not None else None
            if resolved is None:
                return failure(
                    meta=meta,
                    errors=[
                        validation_error(
                            f"datastore {definition.datastore!r} has no endpoint configured",
                            code=codes.INVALID_ARGUMENT,
                        )
                    ],
                )

        try:
            result = self._validator.connect(credential=request.lease, endpoint=resolved)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Credential probe failed unexpectedly: exception_type=%s",
                type(exc).__name__,
                exc_info=exc,
            )
            return failure(
                meta=meta,
                errors=[
                    dependency_error(
                        "probe failed",
                        code=PROBE_FAILED,
                        retryable=False,
                        metadata={
                            "resource": POSTGRES_COMPONENT_ID,
                            "exception_type": type(exc).__name__,
                        },
                    )
                ],
            )
        return success(meta=meta, payload=result)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("datastore",),
    )
    def rotation_status(
        self, *, meta: EnvelopeMeta, datastore: str
    ) -> Envelope[RotationStatus]:
        """Return local rotation state; broker errors only clear ``broker_reachable``."""
        request, errors = self._validate_request(
            meta=meta, model=RotationStatusRequest, payload={"datastore": datastore}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RotationStatusRequest)

        if not self._store.has_datastore(request.datastore):
            return failure(meta=meta, errors=[datastore_not_found(request.datastore)])

        state = self._coordinator.state(request.datastore)
        epoch = self._store.current_epoch(request.datastore)
        roles = self._store.roles_for(request.datastore)
        try:
            broker_status = self._broker.read_rotation_status(datastore=request.datastore)
        except SecretsBrokerError as exc:
            _LOGGER.warning(
                "Broker rotation status unavailable: datastore=%s exception_type=%s",
                request.datastore,
                type(exc).__name__,
            )
            return success(
                meta=meta,
                payload=RotationStatus(
                    datastore=request.datastore,
                    state=state,
                    epoch=epoch,
                    roles=roles,
                    broker_reachable=False,
                ),
            )

        return success(
            meta=meta,
            payload=RotationStatus(
                datastore=request.datastore,
                state=state,
                epoch=epoch,
                roles=roles,
                broker_reachable=True,
                broker_marker=broker_status.generation_marker,
                broker_allowed_roles=broker_status.allowed_roles,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("lease",),
    )
    def revoke_lease(self, *, meta: EnvelopeMeta, lease: Lease) -> Envelope[bool]:
        """Mark ``lease`` stale locally, then revoke it at the broker best effort."""
        request, errors = self._validate_request(
            meta=meta, model=LeaseRequest, payload={"lease": lease}
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, LeaseRequest)

        if self._store.role(request.lease.role) is None:
            return failure(meta=meta, errors=[role_not_found(request.lease.role)])

        self._store.flag_stale(request.lease)
        revoked = self._broker.revoke(lease_id=request.lease.lease_id)
        return success(meta=meta, payload=revoked)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def bootstrap(self, *, meta: EnvelopeMeta) -> Envelope[BootstrapReport]:
        """Write datastore connections, then role templates, to the broker.

        Datastores without a ``connection_url`` are assumed to be configured
        already and are reported as skipped.
        """
        try:
            validate_meta(meta)
        except ValueError as exc:
            return failure(
                meta=meta, errors=[validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
            )

        configured: list[str] = []
        skipped: list[str] = []
        try:
            for datastore in self._settings.datastores:
                if datastore.connection_url == "" or datastore.username == "":
                    skipped.append(datastore.name)
                    continue
                self._broker.configure_datastore(
                    config=DatastoreConnectionConfig(
                        name=datastore.name,
                        plugin_name=datastore.plugin_name,
                        connection_url=datastore.connection_url,
                        allowed_roles=self._store.roles_for(datastore.name),
                        username=datastore.username,
                        password=datastore.password,
                        verify_connection=datastore.verify_connection,
                    )
                )
                configured.append(datastore.name)

            for role in self._settings.roles:
                self._broker.define_role(
                    role=RoleDefinition(
                        name=role.name,
                        datastore=role.datastore,
                        creation_statements=role.creation_statements,
                        default_ttl_seconds=role.default_ttl_seconds,
                        max_ttl_seconds=role.max_ttl_seconds,
                    )
                )
        except SecretsBrokerError as exc:
            return self._broker_failure(meta=meta, operation="bootstrap", exc=exc)

        return success(
            meta=meta,
            payload=BootstrapReport(
                datastores=tuple(configured),
                roles=tuple(role.name for role in self._settings.roles),
                skipped_datastores=tuple(skipped),
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return service readiness and the broker's health probe."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return failure(
                meta=meta, errors=[validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
            )

        broker_health = self._broker.health()
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                broker_ready=broker_health.ready,
                detail=broker_health.detail,
            ),
        )

    def close(self) -> None:
        self._broker.close()

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[BaseModel],
        payload: dict[str, Any],
    ) -> tuple[BaseModel | None, list[ErrorDetail]]:
        """Validate metadata and request payload with stable error messages."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return None, [validation_error(str(exc), code=codes.INVALID_ARGUMENT)]

        try:
            validated = model.model_validate(payload)
        except ValidationError as exc:
            issue = exc.errors()[0]
            field = ".".join(str(item) for item in issue.get("loc", ()))
            field_name = field if field else "payload"
            message = f"{field_name}: {issue.get('msg', 'invalid value')}"
            return None, [validation_error(message, code=codes.INVALID_ARGUMENT)]

        return validated, []

    def _broker_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: SecretsBrokerError,
    ) -> Envelope[Any]:
        """Map broker adapter exceptions into envelope errors."""
        _LOGGER.warning(
            "Credential authority operation failed due to broker error: operation=%s exception_type=%s",
            operation,
            type(exc).__name__,
        )
        return failure(meta=meta, errors=[broker_error_detail(exc)])
