"""Payroll job and summary DTOs: pure Pydantic, zero ORM imports.

Job-facing bodies use camelCase on the wire (``payPeriod``, ``queuePosition``,
``failureReason``) and accept snake_case too. Summary documents keep the
snake_case layout they are stored in.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from payrun.domain.jobs import Job, JobState
from payrun.domain.payloads import PayPeriod, PayrollFilters


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PayrollOptionsIn(_CamelModel):
    send_emails: bool = False
    skip_payslips: bool = False


class PayrollRunRequest(_CamelModel):
    pay_period: PayPeriod
    filters: PayrollFilters = Field(default_factory=PayrollFilters)
    options: PayrollOptionsIn = Field(default_factory=PayrollOptionsIn)
    force: bool = False


class QueuedJob(_CamelModel):
    id: int
    status: str = "queued"
    pay_period: PayPeriod
    filters: PayrollFilters
    options: PayrollOptionsIn
    queue_position: int


class PayrollRunResponse(BaseModel):
    message: str
    job: QueuedJob


class JobStatusRead(_CamelModel):
    id: int
    status: JobState
    progress: int
    data: dict[str, Any]
    result: dict[str, Any] | None = None
    failure_reason: str | None = None
    last_error: str | None = None
    attempts_made: int
    max_attempts: int
    created_at: datetime
    processed_at: datetime | None = None
    finished_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusRead":
        return cls(
            id=job.id,
            status=job.state,
            progress=job.progress,
            data=job.payload,
            result=job.result if job.state is JobState.COMPLETED else None,
            failure_reason=job.failure_reason if job.state is JobState.FAILED else None,
            last_error=job.last_error,
            attempts_made=job.attempts_made,
            max_attempts=job.max_attempts,
            created_at=job.created_at,
            processed_at=job.processed_at,
            finished_at=job.finished_at,
        )


class JobStatusResponse(BaseModel):
    job: JobStatusRead


class JobList(BaseModel):
    jobs: list[JobStatusRead]
    total: int


class PayrollSummaryRead(BaseModel):
    id: str
    job_id: int | None = None
    pay_period: dict[str, Any]
    processed_at: str
    total_employees: int
    total_gross: int
    total_deductions: int
    total_net: int
    currency: str
    filters: dict[str, Any] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)


class PayrollSummaryList(BaseModel):
    payrolls: list[PayrollSummaryRead]
    total: int


class PayrollDetail(BaseModel):
    payroll: dict[str, Any]
