"""Per-datastore root rotation coordination."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Callable

from packages.credlease_shared.logging import fields, get_logger, log_context
from resources.adapters.secrets_broker import SecretsBrokerAdapter, SecretsBrokerError
from services.state.credential_authority.domain import RotationEpoch, RotationState
from services.state.credential_authority.errors import (
    DatastoreNotFoundError,
    RotationInProgressError,
)
from services.state.credential_authority.lease_store import LeaseStore

_LOGGER = get_logger(__name__)


class RotationCoordinator:
    """Drive ``idle -> rotating -> idle`` for each datastore.

    A second rotation request for a datastore that is already rotating fails
    immediately with ``RotationInProgressError``. The epoch only advances after
    the broker confirms the rotation, and leases of the previous generation
    are marked stale in the same locked block. Those leases are then revoked
    at the broker, best effort, once every store lock is released.
    """

    def __init__(
        self,
        *,
        store: LeaseStore,
        broker: SecretsBrokerAdapter,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._broker = broker
        self._clock = clock or (lambda: datetime.now(UTC))
        self._state_lock = threading.Lock()
        self._rotating: set[str] = set()

    def state(self, datastore: str) -> RotationState:
        if not self._store.has_datastore(datastore):
            raise DatastoreNotFoundError(datastore)
        with self._state_lock:
            if datastore in self._rotating:
                return RotationState.ROTATING
        return RotationState.IDLE

    def rotate(self, datastore: str) -> RotationEpoch:
        """Rotate the broker's root credential for ``datastore`` and commit locally."""
        if not self._store.has_datastore(datastore):
            raise DatastoreNotFoundError(datastore)
        with self._state_lock:
            if datastore in self._rotating:
                raise RotationInProgressError(datastore)
            self._rotating.add(datastore)

        try:
            return self._rotate_and_commit(datastore)
        finally:
            with self._state_lock:
                self._rotating.discard(datastore)

    def _rotate_and_commit(self, datastore: str) -> RotationEpoch:
        with log_context({fields.DATASTORE: datastore}):
            _LOGGER.info("root rotation started")
            try:
                rotation = self._broker.rotate_root(datastore=datastore)
            except SecretsBrokerError as exc:
                _LOGGER.warning(
                    "root rotation failed; generation unchanged: error_type=%s error=%s",
                    type(exc).__name__,
                    exc,
                )
                raise

            roles = self._store.roles_for(datastore)
            with self._store.locked(datastore, roles):
                previous = self._store.current_epoch(datastore)
                epoch = self._store.advance_epoch(
                    datastore,
                    rotated_at=self._clock(),
                    broker_marker=rotation.generation_marker,
                )
                stale_ids = [
                    lease_id
                    for role in roles
                    for lease_id in self._store.mark_stale(role, previous.generation)
                ]

            # Rotating the root leaves issued credentials valid at the broker.
            revoked = sum(
                1 for lease_id in stale_ids if self._broker.revoke(lease_id=lease_id)
            )
            with log_context({fields.GENERATION: epoch.generation}):
                _LOGGER.info(
                    "root rotation committed: previous_generation=%s "
                    "stale_leases=%s revoked=%s",
                    previous.generation,
                    len(stale_ids),
                    revoked,
                )
            return epoch
