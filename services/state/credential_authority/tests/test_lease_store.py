"""Behavior tests for in-memory lease and epoch bookkeeping."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from services.state.credential_authority.domain import Lease, LeaseValidity, Role
from services.state.credential_authority.lease_store import LeaseStore

_T0 = datetime(2026, 1, 1, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = _T0

    def __call__(self) -> datetime:
        return self.now


def _store(clock: _Clock | None = None, retained: int = 100) -> LeaseStore:
    return LeaseStore(
        roles=[
            Role(name="app-ro", datastore="orders"),
            Role(name="app-rw", datastore="orders"),
            Role(name="reporting", datastore="warehouse"),
        ],
        datastores=["orders", "warehouse"],
        retained_leases_per_role=retained,
        clock=clock or _Clock(),
    )


def _lease(
    lease_id: str,
    *,
    role: str = "app-ro",
    generation: int = 0,
    duration: int = 3600,
    issued_at: datetime = _T0,
) -> Lease:
    return Lease(
        lease_id=lease_id,
        role=role,
        username=f"user-{lease_id}",
        secret=f"secret-{lease_id}",
        issued_at=issued_at,
        lease_duration_seconds=duration,
        generation=generation,
    )


def test_initial_epoch_is_generation_zero_at_creation_time() -> None:
    store = _store()

    epoch = store.current_epoch("orders")

    assert epoch.generation == 0
    assert epoch.rotated_at == _T0
    assert epoch.broker_marker is None


def test_put_supersedes_without_discarding_previous_lease() -> None:
    store = _store()
    first = _lease("l1")
    second = _lease("l2")

    store.put(first)
    store.put(second)

    assert store.get("app-ro") == second
    assert store.validity(first) == LeaseValidity.FRESH
    assert store.lease_count("app-ro") == 2


def test_mark_stale_flags_only_matching_generation_and_never_deletes() -> None:
    store = _store()
    old = _lease("l1", generation=0)
    store.put(old)
    store.advance_epoch("orders", rotated_at=_T0)
    current = _lease("l2", generation=1)
    store.put(current)

    marked = store.mark_stale("app-ro", 0)

    assert marked == ("l1",)
    assert store.is_stale(old) is True
    assert store.is_stale(current) is False
    assert store.lease_count("app-ro") == 2
    assert store.mark_stale("app-ro", 0) == ()


def test_get_skips_stale_and_expired_leases() -> None:
    clock = _Clock()
    store = _store(clock)
    long_lived = _lease("l1", duration=0)
    short_lived = _lease("l2", duration=60)
    store.put(long_lived)
    store.put(short_lived)

    clock.now = _T0 + timedelta(seconds=61)

    assert store.get("app-ro") == long_lived
    assert store.validity(short_lived) == LeaseValidity.STALE


def test_get_returns_none_for_unknown_role_or_when_every_lease_is_stale() -> None:
    store = _store()
    store.put(_lease("l1"))
    store.mark_stale("app-ro", 0)

    assert store.get("app-ro") is None
    assert store.get("missing") is None


def test_advance_epoch_is_strictly_monotonic_per_datastore() -> None:
    store = _store()

    generations = [
        store.advance_epoch("orders", rotated_at=_T0).generation for _ in range(3)
    ]

    assert generations == [1, 2, 3]
    assert store.current_epoch("warehouse").generation == 0


def test_older_generation_is_stale_even_without_flag() -> None:
    store = _store()
    lease = _lease("l1", generation=0)
    store.put(lease)

    store.advance_epoch("orders", rotated_at=_T0)

    assert store.validity(lease) == LeaseValidity.STALE


def test_validity_of_unknown_lease_depends_on_generation() -> None:
    store = _store()
    store.advance_epoch("orders", rotated_at=_T0)

    assert store.validity(_lease("ghost", generation=0)) == LeaseValidity.STALE
    assert store.validity(_lease("ghost", generation=1)) == LeaseValidity.NOT_FOUND
    assert (
        store.validity(_lease("ghost", role="missing", generation=0))
        == LeaseValidity.NOT_FOUND
    )


def test_validity_rejects_tampered_copy_of_known_lease() -> None:
    store = _store()
    lease = _lease("l1")
    store.put(lease)

    tampered = lease.model_copy(update={"secret": "guessed"})

    assert store.validity(tampered) == LeaseValidity.NOT_FOUND


def test_put_if_generation_refuses_lease_from_previous_epoch() -> None:
    store = _store()
    store.advance_epoch("orders", rotated_at=_T0)

    assert store.put_if_generation(_lease("late", generation=0)) is False
    assert store.put_if_generation(_lease("ok", generation=1)) is True
    assert store.get("app-ro") is not None


def test_retention_evicts_oldest_non_current_leases() -> None:
    store = _store(retained=2)
    for index in range(5):
        store.put(_lease(f"l{index}"))

    assert store.lease_count("app-ro") == 3
    assert store.validity(_lease("l0")) == LeaseValidity.NOT_FOUND
    assert store.validity(_lease("l2")) == LeaseValidity.FRESH
    assert store.get("app-ro") == _lease("l4")


def test_retention_of_zero_keeps_only_current_lease() -> None:
    store = _store(retained=0)
    store.put(_lease("l1"))
    store.put(_lease("l2"))

    assert store.lease_count("app-ro") == 1
    assert store.get("app-ro") == _lease("l2")


def test_flag_stale_marks_single_lease() -> None:
    store = _store()
    first = _lease("l1")
    second = _lease("l2")
    store.put(first)
    store.put(second)

    assert store.flag_stale(second) is True
    assert store.flag_stale(_lease("unknown")) is False
    assert store.get("app-ro") == first


def test_roles_for_lists_roles_bound_to_datastore() -> None:
    store = _store()

    assert store.roles_for("orders") == ("app-ro", "app-rw")
    assert store.roles_for("warehouse") == ("reporting",)


def test_constructor_rejects_role_on_unknown_datastore() -> None:
    with pytest.raises(ValueError):
        LeaseStore(roles=[Role(name="r", datastore="nope")], datastores=["orders"])


def test_put_rejects_unregistered_role() -> None:
    with pytest.raises(KeyError):
        _store().put(_lease("l1", role="missing"))


def test_locked_blocks_role_writers_until_transition_completes() -> None:
    """A writer on a locked role waits; writers on other datastores do not."""
    store = _store()
    entered = threading.Event()
    finished: list[str] = []

    def writer(role: str, lease_id: str) -> None:
        entered.set()
        store.put(_lease(lease_id, role=role))
        finished.append(lease_id)

    with store.locked("orders", store.roles_for("orders")):
        blocked = threading.Thread(target=writer, args=("app-ro", "blocked"))
        blocked.start()
        entered.wait(timeout=5)
        unrelated = threading.Thread(target=writer, args=("reporting", "free"))
        unrelated.start()
        unrelated.join(timeout=5)
        assert finished == ["free"]

    blocked.join(timeout=5)
    assert finished == ["free", "blocked"]
