"""Value types describing one credential connection attempt."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ConnectionOutcome(str, Enum):
    """Classified outcome of one connection attempt."""

    SUCCESS = "success"
    AUTHENTICATION_FAILED = "authentication_failed"
    TRANSPORT_FAILED = "transport_failed"


class ConnectionAttemptResult(BaseModel):
    """Immutable record of one attempt; never carries the password."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: ConnectionOutcome
    username: str
    endpoint: str
    reason: str = ""
    attempted_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.outcome == ConnectionOutcome.SUCCESS
