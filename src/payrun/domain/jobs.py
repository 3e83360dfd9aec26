"""Queue-facing job types: pure Pydantic, zero ORM imports."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from payrun.domain.clock import as_utc
from payrun.domain.payloads import NotificationPayload, PayrollRunPayload, parse_payload


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"


IN_FLIGHT_STATES = frozenset({JobState.WAITING, JobState.ACTIVE, JobState.DELAYED})
TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})


class JobOptions(BaseModel):
    """Per-job retry policy. Backoff is always exponential."""

    model_config = ConfigDict(frozen=True)

    attempts: int = 3
    backoff_delay_ms: int = 2000
    priority: int = 0


class Job(BaseModel):
    """Snapshot of a job row. Mutations go through ``JobQueue`` only."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    queue: str
    name: str
    state: JobState
    payload: dict[str, Any]
    priority: int = 0
    progress: int = 0
    attempts_made: int = 0
    max_attempts: int = 1
    backoff_delay_ms: int = 0
    result: dict[str, Any] | None = None
    failure_reason: str | None = None
    last_error: str | None = None
    locked_by: str | None = None
    created_at: datetime
    processed_at: datetime | None = None
    finished_at: datetime | None = None
    available_at: datetime | None = None
    heartbeat_at: datetime | None = None

    @field_validator("created_at", "processed_at", "finished_at", "available_at", "heartbeat_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def typed_payload(self) -> PayrollRunPayload | NotificationPayload:
        return parse_payload(self.payload)
