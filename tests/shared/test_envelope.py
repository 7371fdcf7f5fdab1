"""Tests for envelope model, builder and metadata behavior."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from packages.credlease_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    failure,
    new_meta,
    success,
    validate_meta,
)
from packages.credlease_shared.errors import (
    ErrorCategory,
    ErrorDetail,
    conflict_error,
    dependency_error,
)


def _meta(**overrides: object) -> EnvelopeMeta:
    """Return deterministic metadata for envelope tests."""
    values: dict[str, object] = {
        "kind": EnvelopeKind.COMMAND,
        "source": "cli",
        "principal": "operator",
        "timestamp": datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC),
        "envelope_id": "env-1",
        "trace_id": "trace-1",
    }
    values.update(overrides)
    return new_meta(**values)


def test_success_builder_returns_ok_envelope_with_payload() -> None:
    envelope = success(meta=_meta(), payload={"lease_id": "database/creds/r/1"})

    assert envelope.ok is True
    assert envelope.value == {"lease_id": "database/creds/r/1"}
    assert envelope.errors == []
    assert envelope.error_codes == []


def test_failure_builder_returns_non_ok_envelope_without_payload() -> None:
    envelope = failure(
        meta=_meta(),
        errors=[dependency_error("broker down", code="BROKER_UNAVAILABLE")],
    )

    assert envelope.ok is False
    assert envelope.payload is None
    assert envelope.value is None
    assert envelope.error_codes == ["BROKER_UNAVAILABLE"]
    assert envelope.errors[0].category == ErrorCategory.DEPENDENCY
    assert envelope.errors[0].retryable is True


def test_success_with_none_payload_is_still_ok() -> None:
    envelope = success(meta=_meta(), payload=None)

    assert envelope.ok is True
    assert envelope.payload is not None
    assert envelope.value is None


def test_conflict_errors_default_to_not_retryable() -> None:
    assert conflict_error("busy").retryable is False
    assert conflict_error("superseded", retryable=True).retryable is True


def test_envelope_model_validation_rejects_invalid_error_shape() -> None:
    with pytest.raises(ValidationError):
        Envelope[dict[str, str]].model_validate(
            {
                "metadata": _meta(),
                "payload": {"value": {"lease_id": "x"}},
                "errors": [{"code": "BAD"}],
            }
        )


def test_envelope_accepts_error_detail_instances() -> None:
    detail = ErrorDetail(
        code="ROLE_NOT_FOUND",
        message="role not found: nope",
        category=ErrorCategory.NOT_FOUND,
    )

    envelope = failure(meta=_meta(), errors=[detail])

    assert envelope.errors == [detail]
    assert detail.metadata == {}


def test_new_meta_generates_ids_and_normalizes_naive_timestamp() -> None:
    timestamp = datetime(2026, 1, 1, 12, 0, 0)

    meta = new_meta(
        kind=EnvelopeKind.COMMAND,
        source="cli",
        principal="operator",
        timestamp=timestamp,
    )

    assert meta.envelope_id
    assert meta.trace_id
    assert meta.envelope_id != meta.trace_id
    assert meta.parent_id == ""
    assert meta.timestamp == timestamp.replace(tzinfo=UTC)


def test_new_meta_converts_aware_timestamp_to_utc() -> None:
    local_tz = timezone(timedelta(hours=-5))

    meta = _meta(timestamp=datetime(2026, 1, 1, 7, 0, 0, tzinfo=local_tz))

    assert meta.timestamp == datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def test_validate_meta_accepts_complete_metadata() -> None:
    validate_meta(_meta())


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"source": ""}, "metadata.source is required"),
        ({"principal": ""}, "metadata.principal is required"),
        ({"kind": EnvelopeKind.UNSPECIFIED}, "metadata.kind must be specified"),
    ],
)
def test_validate_meta_reports_first_bad_field(
    overrides: dict[str, object], message: str
) -> None:
    with pytest.raises(ValueError) as exc_info:
        validate_meta(_meta(**overrides))

    assert str(exc_info.value) == message
