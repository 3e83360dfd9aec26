"""Payroll worker: one payroll run per claimed job.

States: ``idle -> claimed -> iterating -> summarizing -> done | errored``.

Per-employee failures (bad record, payslip write error, notification enqueue
error) are logged and skipped; they never fail the run. Run-level failures
(no eligible employees, summary write error) fail the job and leave retries
to the queue. Every attempt starts from an empty result set, so a retry can
never double-count employees processed by an earlier attempt, and payslip
emails are queued only once the summary is on disk.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.engine import Engine

from payrun.config import settings
from payrun.domain.clock import Clock, SystemClock
from payrun.domain.exceptions import (
    InvalidJobStateError, NoEligibleEmployeesError, NotFoundError, PayrunError,
)
from payrun.domain.jobs import Job
from payrun.domain.payloads import PAYROLL_RUN, NotificationPayload, PayrollRunPayload
from payrun.infra.db.repositories.employee_repository import EmployeeRepository
from payrun.infra.db.uow import UnitOfWork
from payrun.infra.storage.summaries import SummaryStore, summary_id_for
from payrun.jobs.queue import JobHandle, JobQueue
from payrun.jobs.runner import QueueWorker
from payrun.payroll.calculator import (
    EmployeeSnapshot, PayrollCalculationResult, PayrollRates, calculate, format_currency,
    round_half_up,
)
from payrun.payroll.payslips import PayslipArtifact, PayslipGenerator

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    CLAIMED = "claimed"
    ITERATING = "iterating"
    SUMMARIZING = "summarizing"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class RunOutcome:
    eligible: int
    results: list[PayrollCalculationResult] = field(default_factory=list)
    payslips: list[PayslipArtifact] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)
    # enqueued only after the summary write succeeds
    pending_emails: list[tuple[int, NotificationPayload]] = field(default_factory=list)
    notifications: int = 0


def progress_percent(done: int, total: int) -> int:
    return round_half_up(Decimal(done * 100) / Decimal(total))


class PayrollWorker(QueueWorker):
    job_name = PAYROLL_RUN

    def __init__(
        self,
        queue: JobQueue,
        engine: Engine,
        payslips: PayslipGenerator,
        summaries: SummaryStore,
        notifications: JobQueue | None = None,
        rates: PayrollRates | None = None,
        currency: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(queue)
        self._engine = engine
        self._payslips = payslips
        self._summaries = summaries
        self._notifications = notifications
        self._rates = rates
        self._currency = currency
        self._clock = clock or SystemClock()
        self.state = WorkerState.IDLE

    def run_once(self) -> Job | None:
        job = super().run_once()
        if job is None:
            self.state = WorkerState.IDLE
        return job

    def process(self, handle: JobHandle) -> Job:
        self.state = WorkerState.CLAIMED
        try:
            payload = handle.payload
            if not isinstance(payload, PayrollRunPayload):
                raise PayrunError(f"Payroll lane cannot process '{payload.kind}' jobs")

            period = payload.pay_period
            logger.info(
                "Job %s: starting payroll for %s to %s", handle.id, period.start_date, period.end_date,
            )
            employees = self._load_employees(payload)
            if not employees:
                raise NoEligibleEmployeesError("No eligible employees found for payroll processing")

            self.state = WorkerState.ITERATING
            outcome = self._iterate(handle, payload, employees)

            self.state = WorkerState.SUMMARIZING
            ack = self._summarize(handle.job, payload, outcome)

            job = handle.complete(ack)
            self.state = WorkerState.DONE
            return job
        except Exception as exc:
            self.state = WorkerState.ERRORED
            reason = exc.message if isinstance(exc, PayrunError) else f"{type(exc).__name__}: {exc}"
            logger.error("Job %s: payroll run failed: %s", handle.id, reason)
            return self._record_failure(handle, reason)

    def _record_failure(self, handle: JobHandle, reason: str) -> Job | None:
        try:
            return handle.fail(reason)
        except (InvalidJobStateError, NotFoundError) as exc:
            # lost the claim, e.g. the sweeper recovered this job as stalled
            logger.error("Job %s: could not record failure: %s", handle.id, exc.message)
            return self.queue.get(handle.id)

    # ------------------------------------------------------------------
    # claimed
    # ------------------------------------------------------------------

    def _load_employees(self, payload: PayrollRunPayload) -> list[EmployeeSnapshot]:
        with UnitOfWork(self._engine) as uow:
            rows = EmployeeRepository(uow.session).list_eligible(
                department=payload.filters.department,
                employee_ids=payload.filters.employee_ids,
            )
            return [EmployeeSnapshot.of(row) for row in rows]

    # ------------------------------------------------------------------
    # iterating
    # ------------------------------------------------------------------

    def _iterate(
        self, handle: JobHandle, payload: PayrollRunPayload, employees: list[EmployeeSnapshot],
    ) -> RunOutcome:
        outcome = RunOutcome(eligible=len(employees))
        total = len(employees)
        rates = self._rates or PayrollRates.from_settings()
        for index, employee in enumerate(employees, start=1):
            try:
                result = calculate(employee, payload.pay_period, rates, self._currency)
                artifact = None
                if not payload.options.skip_payslips:
                    artifact = self._payslips.generate(result)
                    outcome.payslips.append(artifact)
                outcome.results.append(result)
            except Exception as exc:
                reason = exc.message if isinstance(exc, PayrunError) else str(exc)
                logger.error("Job %s: skipping employee %s: %s", handle.id, employee.id, reason)
                outcome.skipped.append({"employee_id": employee.id, "reason": reason})
            else:
                if artifact is not None and payload.options.send_emails and employee.email:
                    outcome.pending_emails.append((employee.id, NotificationPayload(
                        to=employee.email,
                        employee_name=result.employee_name,
                        payslip_path=str(artifact.file_path),
                        pay_period=payload.pay_period,
                    )))
            handle.progress(progress_percent(index, total))
        logger.info(
            "Job %s: processed %d of %d employee(s)", handle.id, len(outcome.results), total,
        )
        return outcome

    def _dispatch_emails(self, job: Job, outcome: RunOutcome) -> int:
        if self._notifications is None:
            return 0
        queued = 0
        for employee_id, notification in outcome.pending_emails:
            try:
                self._notifications.enqueue(notification)
            except Exception as exc:
                # the payslip exists; only the email is lost
                logger.error(
                    "Job %s: payslip email for employee %s not queued: %s", job.id, employee_id, exc,
                )
            else:
                queued += 1
        return queued

    # ------------------------------------------------------------------
    # summarizing
    # ------------------------------------------------------------------

    def _summarize(self, job: Job, payload: PayrollRunPayload, outcome: RunOutcome) -> dict[str, Any]:
        results = outcome.results
        currency = self._currency or settings.PAYROLL_CURRENCY
        created_ms = int(job.created_at.timestamp() * 1000)
        summary = {
            "id": summary_id_for(job.id, created_ms),
            "job_id": job.id,
            "pay_period": payload.pay_period.model_dump(mode="json"),
            "processed_at": self._clock.now().isoformat(),
            "total_employees": len(results),
            "eligible_employees": outcome.eligible,
            "skipped_employees": outcome.skipped,
            "total_gross": sum(r.gross_salary for r in results),
            "total_deductions": sum(r.deductions.total for r in results),
            "total_net": sum(r.net_salary for r in results),
            "currency": currency,
            "filters": payload.filters.model_dump(mode="json"),
            "options": payload.options.model_dump(mode="json"),
            "payroll_items": [r.model_dump(mode="json") for r in results],
            "payslip_files": [a.file_reference for a in outcome.payslips],
        }
        path = self._summaries.write(summary)
        logger.info("Job %s: payroll summary saved to %s", job.id, path.name)
        outcome.notifications = self._dispatch_emails(job, outcome)
        return {
            "success": True,
            "summary": {
                "payroll_id": summary["id"],
                "employees_processed": len(results),
                "employees_skipped": len(outcome.skipped),
                "total_gross": format_currency(summary["total_gross"], currency),
                "total_net": format_currency(summary["total_net"], currency),
                "total_gross_minor": summary["total_gross"],
                "total_net_minor": summary["total_net"],
                "payslips_generated": len(outcome.payslips),
                "notifications_queued": outcome.notifications,
                "summary_file": path.name,
            },
        }


def build_payroll_worker(queues, engine: Engine, clock: Clock | None = None) -> PayrollWorker:
    return PayrollWorker(
        queue=queues.payroll,
        engine=engine,
        payslips=PayslipGenerator(settings.PAYSLIPS_DIR, clock),
        summaries=SummaryStore(settings.PAYROLLS_DIR),
        notifications=queues.email,
        clock=clock,
    )
