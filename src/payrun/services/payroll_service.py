"""Payroll run use-cases: submit, poll, list jobs, read summaries.

Owns the queue/summary-store to DTO mapping; routers never see ``Job`` rows
or raw summary files.
"""
from __future__ import annotations

from payrun.domain.clock import Clock, SystemClock
from payrun.domain.exceptions import DuplicateJobError, NotFoundError, ValidationError
from payrun.domain.payloads import PayrollOptions, PayrollRunPayload, Requester
from payrun.infra.storage.summaries import LIST_LIMIT, SummaryStore
from payrun.jobs.queue import JobQueue
from payrun.api.schemas.payroll import (
    JobList, JobStatusRead, JobStatusResponse, PayrollDetail, PayrollRunRequest,
    PayrollRunResponse, PayrollSummaryList, PayrollSummaryRead, QueuedJob,
)


class PayrollService:
    def __init__(self, queue: JobQueue, summaries: SummaryStore, clock: Clock | None = None) -> None:
        self._queue = queue
        self._summaries = summaries
        self._clock = clock or SystemClock()

    def submit(self, request: PayrollRunRequest, requester: Requester) -> PayrollRunResponse:
        """Validate and enqueue a payroll run.

        Raises:
            ValidationError: start date is not before end date.
            DuplicateJobError: an in-flight job covers the same period and
                ``force`` is not set.
        """
        period = request.pay_period
        if not period.is_valid():
            raise ValidationError("Start date must be before end date")

        if not request.force:
            existing = self._queue.find_duplicate(period)
            if existing is not None:
                raise DuplicateJobError(
                    "Payroll job already exists for this period; use force=true to create anyway",
                    existing_job_id=existing.id,
                )

        payload = PayrollRunPayload(
            pay_period=period,
            filters=request.filters,
            options=PayrollOptions(
                send_emails=request.options.send_emails,
                skip_payslips=request.options.skip_payslips,
            ),
            requested_by=requester,
            requested_at=self._clock.now(),
        )
        job = self._queue.enqueue(payload)
        return PayrollRunResponse(
            message="Payroll job queued successfully",
            job=QueuedJob(
                id=job.id,
                pay_period=period,
                filters=request.filters,
                options=request.options,
                queue_position=self._queue.position(job.id),
            ),
        )

    def status(self, job_id: int) -> JobStatusResponse:
        job = self._queue.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return JobStatusResponse(job=JobStatusRead.from_job(job))

    def list_jobs(self, limit: int = 50) -> JobList:
        jobs = self._queue.list(limit=limit)
        return JobList(jobs=[JobStatusRead.from_job(j) for j in jobs], total=len(jobs))

    def list_summaries(self) -> PayrollSummaryList:
        items = [PayrollSummaryRead.model_validate(s) for s in self._summaries.list_recent(LIST_LIMIT)]
        return PayrollSummaryList(payrolls=items, total=len(items))

    def get_summary(self, payroll_id: str) -> PayrollDetail:
        return PayrollDetail(payroll=self._summaries.get(payroll_id))
