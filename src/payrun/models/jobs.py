"""Durable job rows backing ``payrun.jobs.queue.JobQueue``."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel


class JobRecord(SQLModel, table=True):
    __tablename__ = "job"
    __table_args__ = (Index("ix_job_queue_state_priority", "queue", "state", "priority", "id"),)

    id: int | None = Field(default=None, primary_key=True)
    queue: str = Field(index=True)
    name: str
    # JobState value; stored as plain text so rows stay readable without the enum
    state: str = Field(default="waiting", index=True)
    payload: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    priority: int = 0
    progress: int = 0
    attempts_made: int = 0
    max_attempts: int = 1
    backoff_delay_ms: int = 0
    result: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    failure_reason: str | None = None
    last_error: str | None = None
    locked_by: str | None = None
    created_at: datetime
    processed_at: datetime | None = None
    finished_at: datetime | None = None
    available_at: datetime | None = None
    heartbeat_at: datetime | None = None
