"""In-memory lease and rotation-epoch bookkeeping with per-key locking.

Lock order is always datastore lock before role locks, and role locks in
sorted name order. No lock here is ever held across broker or datastore I/O;
callers perform remote calls first and then commit through this store.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Iterable, Iterator

from services.state.credential_authority.domain import (
    Lease,
    LeaseValidity,
    Role,
    RotationEpoch,
)


@dataclass
class _LeaseRecord:
    lease: Lease
    stale: bool = False


class LeaseStore:
    """Owns role->leases and datastore->current epoch for one process."""

    def __init__(
        self,
        *,
        roles: Iterable[Role],
        datastores: Iterable[str],
        retained_leases_per_role: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if retained_leases_per_role < 0:
            raise ValueError("retained_leases_per_role must be >= 0")
        self._clock = clock or (lambda: datetime.now(UTC))
        self._retained = retained_leases_per_role
        self._lock_registry = threading.Lock()
        self._role_locks: dict[str, threading.RLock] = {}
        self._datastore_locks: dict[str, threading.RLock] = {}

        created_at = self._clock()
        self._epochs: dict[str, RotationEpoch] = {
            name: RotationEpoch(datastore=name, generation=0, rotated_at=created_at)
            for name in datastores
        }
        self._roles: dict[str, Role] = {}
        self._leases: dict[str, OrderedDict[str, _LeaseRecord]] = {}
        self._current: dict[str, str] = {}
        for role in roles:
            if role.datastore not in self._epochs:
                raise ValueError(
                    f"role {role.name!r} references unknown datastore {role.datastore!r}"
                )
            if role.name in self._roles:
                raise ValueError(f"role {role.name!r} is defined more than once")
            self._roles[role.name] = role
            self._leases[role.name] = OrderedDict()

    def role(self, name: str) -> Role | None:
        return self._roles.get(name)

    def roles_for(self, datastore: str) -> tuple[str, ...]:
        """Return the sorted names of roles tied to ``datastore``."""
        return tuple(
            sorted(name for name, role in self._roles.items() if role.datastore == datastore)
        )

    def has_datastore(self, datastore: str) -> bool:
        return datastore in self._epochs

    def current_epoch(self, datastore: str) -> RotationEpoch:
        """Return the current epoch; raises ``KeyError`` for unknown datastores."""
        with self._datastore_lock(datastore):
            return self._epochs[datastore]

    def advance_epoch(
        self,
        datastore: str,
        *,
        rotated_at: datetime,
        broker_marker: str | None = None,
    ) -> RotationEpoch:
        """Replace the current epoch with the next generation."""
        with self._datastore_lock(datastore):
            previous = self._epochs[datastore]
            epoch = RotationEpoch(
                datastore=datastore,
                generation=previous.generation + 1,
                rotated_at=rotated_at,
                broker_marker=broker_marker,
            )
            self._epochs[datastore] = epoch
            return epoch

    @contextmanager
    def locked(self, datastore: str, roles: Iterable[str]) -> Iterator[None]:
        """Hold the datastore lock and every role lock for one atomic transition."""
        with ExitStack() as stack:
            stack.enter_context(self._datastore_lock(datastore))
            for name in sorted(set(roles)):
                stack.enter_context(self._role_lock(name))
            yield

    def put(self, lease: Lease) -> None:
        """Store ``lease`` as its role's current lease, superseding the previous one."""
        with self._role_lock(lease.role):
            self._put_locked(lease)

    def put_if_generation(self, lease: Lease) -> bool:
        """Store ``lease`` only when its generation is still the current epoch.

        Rotation commits advance the epoch while holding this role's lock, so
        the comparison and the insert cannot interleave with one.
        """
        role = self._require_role(lease.role)
        with self._role_lock(lease.role):
            if self._epochs[role.datastore].generation != lease.generation:
                return False
            self._put_locked(lease)
            return True

    def mark_stale(self, role: str, generation: int) -> tuple[str, ...]:
        """Flag every stored lease of ``role`` issued at ``generation``.

        Returns the ids of the leases flagged by this call; leases already
        flagged are left out.
        """
        self._require_role(role)
        marked: list[str] = []
        with self._role_lock(role):
            for record in self._leases[role].values():
                if record.lease.generation == generation and not record.stale:
                    record.stale = True
                    marked.append(record.lease.lease_id)
        return tuple(marked)

    def flag_stale(self, lease: Lease) -> bool:
        """Flag one stored lease as stale; returns whether it was known."""
        if lease.role not in self._roles:
            return False
        with self._role_lock(lease.role):
            record = self._leases[lease.role].get(lease.lease_id)
            if record is None:
                return False
            record.stale = True
            return True

    def get(self, role: str) -> Lease | None:
        """Return the most recent lease of ``role`` that is neither stale nor expired."""
        if role not in self._roles:
            return None
        with self._role_lock(role):
            now = self._clock()
            for record in reversed(self._leases[role].values()):
                if not self._record_stale(record, now):
                    return record.lease
        return None

    def is_stale(self, lease: Lease) -> bool:
        """Return whether ``lease`` is flagged, from an older generation, or expired."""
        return self.validity(lease) == LeaseValidity.STALE

    def validity(self, lease: Lease) -> LeaseValidity:
        """Classify ``lease`` against local state without any network call."""
        role = self._roles.get(lease.role)
        if role is None:
            return LeaseValidity.NOT_FOUND
        with self._role_lock(lease.role):
            now = self._clock()
            record = self._leases[lease.role].get(lease.lease_id)
            if record is None or record.lease != lease:
                # Evicted or never issued here; an older generation is still
                # provably stale.
                if lease.generation < self._epochs[role.datastore].generation:
                    return LeaseValidity.STALE
                return LeaseValidity.NOT_FOUND
            if self._record_stale(record, now):
                return LeaseValidity.STALE
            return LeaseValidity.FRESH

    def lease_count(self, role: str) -> int:
        with self._role_lock(role):
            return len(self._leases.get(role, ()))

    def _put_locked(self, lease: Lease) -> None:
        records = self._require_records(lease.role)
        records.pop(lease.lease_id, None)
        records[lease.lease_id] = _LeaseRecord(lease=lease)
        self._current[lease.role] = lease.lease_id
        self._evict_locked(lease.role, records)

    def _evict_locked(self, role: str, records: OrderedDict[str, _LeaseRecord]) -> None:
        current = self._current.get(role)
        retained = len(records) - (1 if current in records else 0)
        if retained <= self._retained:
            return
        for lease_id in list(records):
            if retained <= self._retained:
                break
            if lease_id == current:
                continue
            del records[lease_id]
            retained -= 1

    def _record_stale(self, record: _LeaseRecord, now: datetime) -> bool:
        lease = record.lease
        datastore = self._roles[lease.role].datastore
        return (
            record.stale
            or lease.generation < self._epochs[datastore].generation
            or lease.is_expired(now)
        )

    def _require_role(self, role: str) -> Role:
        resolved = self._roles.get(role)
        if resolved is None:
            raise KeyError(f"role {role!r} is not registered")
        return resolved

    def _require_records(self, role: str) -> OrderedDict[str, _LeaseRecord]:
        self._require_role(role)
        return self._leases[role]

    def _role_lock(self, role: str) -> threading.RLock:
        with self._lock_registry:
            lock = self._role_locks.get(role)
            if lock is None:
                lock = threading.RLock()
                self._role_locks[role] = lock
            return lock

    def _datastore_lock(self, datastore: str) -> threading.RLock:
        with self._lock_registry:
            lock = self._datastore_locks.get(datastore)
            if lock is None:
                lock = threading.RLock()
                self._datastore_locks[datastore] = lock
            return lock
