"""Durable job queue backed by the ``job`` table.

Contract:
    - ``enqueue()`` stores a ``waiting`` job and returns at once.
    - ``claim_next()`` moves one ``waiting`` (or due ``delayed``) job to
      ``active`` with a conditional UPDATE; two workers racing for the same
      row cannot both win.
    - ``update_progress()`` / ``complete()`` / ``fail()`` only apply to
      ``active`` jobs, optionally fenced by the claiming worker's token.
    - ``fail()`` reschedules with exponential backoff until ``max_attempts``
      is reached, then the job is terminally ``failed``.

A queue is an explicitly constructed object: ``connect()`` before use,
``close()`` on shutdown. Several queues ("lanes") share one table, separated
by ``queue``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterable

from sqlalchemy import and_, case, delete, func, insert, or_, select, text, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from payrun.config import settings
from payrun.domain.clock import Clock, SystemClock
from payrun.domain.exceptions import InvalidJobStateError, NotFoundError, QueueUnavailableError
from payrun.domain.jobs import IN_FLIGHT_STATES, Job, JobOptions, JobState
from payrun.domain.payloads import (
    PAYROLL_RUN, NotificationPayload, PayPeriod, PayrollRunPayload,
)
from payrun.models.jobs import JobRecord

logger = logging.getLogger(__name__)

PAYROLL_QUEUE = "payroll"
EMAIL_QUEUE = "email"

_jobs = JobRecord.__table__
_CLAIM_ATTEMPTS = 5


def backoff_delay(base_delay_ms: int, attempts_made: int) -> timedelta:
    """``base * 2**attempts_made``, where *attempts_made* counts failures before this one."""
    return timedelta(milliseconds=base_delay_ms * (2 ** attempts_made))


class JobQueue:
    def __init__(
        self,
        engine: Engine,
        name: str,
        default_options: JobOptions | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._engine = engine
        self.name = name
        self.default_options = default_options or JobOptions()
        self._clock = clock or SystemClock()
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> "JobQueue":
        """Verify the job store is reachable and the table exists.

        Raises:
            QueueUnavailableError: the database cannot be reached.
        """
        try:
            with self._engine.begin() as conn:
                conn.execute(text("SELECT 1"))
            SQLModel.metadata.create_all(self._engine, tables=[_jobs])
        except SQLAlchemyError as exc:
            raise QueueUnavailableError(
                f"Queue '{self.name}' cannot reach its job store: {exc}"
            ) from exc
        self._connected = True
        logger.info("Queue %s connected", self.name)
        return self

    def close(self) -> None:
        # the engine belongs to the caller; only this handle is retired
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def _begin(self):
        if not self._connected:
            raise QueueUnavailableError(f"Queue '{self.name}' is not connected")
        return self._engine.begin()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(
        self,
        payload: PayrollRunPayload | NotificationPayload,
        options: JobOptions | None = None,
    ) -> Job:
        opts = options or self.default_options
        now = self._clock.now()
        with self._begin() as conn:
            result = conn.execute(
                insert(_jobs).values(
                    queue=self.name,
                    name=payload.kind,
                    state=JobState.WAITING.value,
                    payload=payload.model_dump(mode="json"),
                    priority=opts.priority,
                    progress=0,
                    attempts_made=0,
                    max_attempts=max(1, opts.attempts),
                    backoff_delay_ms=max(0, opts.backoff_delay_ms),
                    created_at=now,
                )
            )
            job_id = result.inserted_primary_key[0]
            job = self._fetch(conn, job_id)
        logger.info("Job %s (%s) queued on %s", job.id, job.name, self.name)
        return job

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def _claimable(self, now):
        return or_(
            _jobs.c.state == JobState.WAITING.value,
            and_(_jobs.c.state == JobState.DELAYED.value, _jobs.c.available_at <= now),
        )

    def claim_next(self, job_name: str | None = None, worker_id: str | None = None) -> Job | None:
        """Atomically take the next claimable job, or None when the lane is idle."""
        for _ in range(_CLAIM_ATTEMPTS):
            now = self._clock.now()
            with self._begin() as conn:
                stmt = select(_jobs.c.id).where(_jobs.c.queue == self.name, self._claimable(now))
                if job_name:
                    stmt = stmt.where(_jobs.c.name == job_name)
                candidate = conn.execute(
                    stmt.order_by(_jobs.c.priority, _jobs.c.id).limit(1)
                ).scalar()
                if candidate is None:
                    return None
                claimed = conn.execute(
                    update(_jobs)
                    .where(_jobs.c.id == candidate, self._claimable(now))
                    .values(
                        state=JobState.ACTIVE.value,
                        locked_by=worker_id,
                        processed_at=now,
                        heartbeat_at=now,
                        available_at=None,
                        progress=0,
                    )
                ).rowcount
                if claimed == 1:
                    job = self._fetch(conn, candidate)
                    logger.info(
                        "Job %s claimed on %s (attempt %d/%d)",
                        job.id, self.name, job.attempts_made + 1, job.max_attempts,
                    )
                    return job
            # another worker won this row; look again
        return None

    def update_progress(self, job_id: int, percent: int, token: str | None = None) -> None:
        pct = max(0, min(100, int(percent)))
        with self._begin() as conn:
            stmt = update(_jobs).where(*self._active_guard(job_id, token)).values(
                progress=case((_jobs.c.progress < pct, pct), else_=_jobs.c.progress),
                heartbeat_at=self._clock.now(),
            )
            if conn.execute(stmt).rowcount != 1:
                self._raise_not_active(conn, job_id)

    def complete(self, job_id: int, result: dict[str, Any] | None = None, token: str | None = None) -> Job:
        now = self._clock.now()
        with self._begin() as conn:
            stmt = update(_jobs).where(*self._active_guard(job_id, token)).values(
                state=JobState.COMPLETED.value,
                result=result or {},
                progress=100,
                finished_at=now,
                locked_by=None,
                failure_reason=None,
            )
            if conn.execute(stmt).rowcount != 1:
                self._raise_not_active(conn, job_id)
            job = self._fetch(conn, job_id)
        logger.info("Job %s completed on %s", job_id, self.name)
        return job

    def fail(self, job_id: int, reason: str, token: str | None = None) -> Job:
        """Record a failed attempt; reschedule with backoff or fail terminally."""
        now = self._clock.now()
        with self._begin() as conn:
            current = self._fetch(conn, job_id)
            if current is None:
                raise NotFoundError(f"Job {job_id} not found")
            if current.state is not JobState.ACTIVE or (token and current.locked_by != token):
                raise InvalidJobStateError(f"Job {job_id} is not active (state={current.state.value})")

            attempts = current.attempts_made + 1
            values: dict[str, Any] = {
                "attempts_made": attempts,
                "last_error": reason,
                "locked_by": None,
            }
            if attempts < current.max_attempts:
                delay = backoff_delay(current.backoff_delay_ms, current.attempts_made)
                values.update(state=JobState.DELAYED.value, available_at=now + delay)
            else:
                values.update(state=JobState.FAILED.value, failure_reason=reason, finished_at=now)

            updated = conn.execute(
                update(_jobs)
                .where(
                    _jobs.c.id == job_id,
                    _jobs.c.state == JobState.ACTIVE.value,
                    _jobs.c.attempts_made == current.attempts_made,
                )
                .values(**values)
            ).rowcount
            if updated != 1:
                raise InvalidJobStateError(f"Job {job_id} changed state while failing it")
            job = self._fetch(conn, job_id)

        if job.state is JobState.DELAYED:
            logger.warning(
                "Job %s failed attempt %d/%d, retrying at %s: %s",
                job_id, attempts, job.max_attempts, job.available_at, reason,
            )
        else:
            logger.error("Job %s failed permanently after %d attempt(s): %s", job_id, attempts, reason)
        return job

    def _active_guard(self, job_id: int, token: str | None) -> list:
        clauses = [
            _jobs.c.id == job_id,
            _jobs.c.queue == self.name,
            _jobs.c.state == JobState.ACTIVE.value,
        ]
        if token:
            clauses.append(_jobs.c.locked_by == token)
        return clauses

    def _raise_not_active(self, conn: Connection, job_id: int) -> None:
        job = self._fetch(conn, job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        raise InvalidJobStateError(f"Job {job_id} is not held by this worker (state={job.state.value})")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _fetch(self, conn: Connection, job_id: int) -> Job | None:
        row = conn.execute(
            select(_jobs).where(_jobs.c.id == job_id, _jobs.c.queue == self.name)
        ).mappings().first()
        return Job.model_validate(dict(row)) if row is not None else None

    def get(self, job_id: int) -> Job | None:
        with self._begin() as conn:
            return self._fetch(conn, job_id)

    def list(
        self,
        states: Iterable[JobState] | None = None,
        limit: int | None = 50,
        offset: int = 0,
    ) -> list[Job]:
        """Jobs in *states* (all states when None), newest first."""
        stmt = select(_jobs).where(_jobs.c.queue == self.name)
        if states is not None:
            stmt = stmt.where(_jobs.c.state.in_([JobState(s).value for s in states]))
        stmt = stmt.order_by(_jobs.c.created_at.desc(), _jobs.c.id.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [Job.model_validate(dict(r)) for r in rows]

    def position(self, job_id: int) -> int:
        """0-based place among waiting jobs in claim order; -1 when not waiting."""
        with self._begin() as conn:
            job = self._fetch(conn, job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            if job.state is not JobState.WAITING:
                return -1
            ahead = conn.execute(
                select(func.count()).select_from(_jobs).where(
                    _jobs.c.queue == self.name,
                    _jobs.c.state == JobState.WAITING.value,
                    or_(
                        _jobs.c.priority < job.priority,
                        and_(_jobs.c.priority == job.priority, _jobs.c.id < job.id),
                    ),
                )
            ).scalar_one()
        return int(ahead)

    def counts(self) -> dict[str, int]:
        with self._begin() as conn:
            rows = conn.execute(
                select(_jobs.c.state, func.count())
                .where(_jobs.c.queue == self.name)
                .group_by(_jobs.c.state)
            ).all()
        counts = {state.value: 0 for state in JobState}
        counts.update({state: int(n) for state, n in rows})
        return counts

    def find_duplicate(self, pay_period: PayPeriod) -> Job | None:
        """Oldest in-flight payroll job for the same period.

        A linear scan followed by a separate enqueue: two near-simultaneous
        submissions can both miss each other.
        """
        wanted = pay_period.model_dump(mode="json")
        matches = [
            job for job in self.list(IN_FLIGHT_STATES, limit=None)
            if job.name == PAYROLL_RUN and job.payload.get("pay_period") == wanted
        ]
        return min(matches, key=lambda j: j.id) if matches else None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clean(self, grace: timedelta, state: JobState) -> int:
        """Delete ``state`` jobs that finished more than *grace* ago."""
        if state not in (JobState.COMPLETED, JobState.FAILED):
            raise ValueError(f"Only terminal jobs can be cleaned, got {state.value}")
        cutoff = self._clock.now() - grace
        with self._begin() as conn:
            removed = conn.execute(
                delete(_jobs).where(
                    _jobs.c.queue == self.name,
                    _jobs.c.state == state.value,
                    _jobs.c.finished_at < cutoff,
                )
            ).rowcount
        return int(removed or 0)

    def sweep(self) -> dict[str, int]:
        removed = {
            JobState.COMPLETED.value: self.clean(
                timedelta(hours=settings.COMPLETED_RETENTION_HOURS), JobState.COMPLETED
            ),
            JobState.FAILED.value: self.clean(
                timedelta(days=settings.FAILED_RETENTION_DAYS), JobState.FAILED
            ),
        }
        if any(removed.values()):
            logger.info("Queue %s cleaned %s", self.name, removed)
        return removed

    def recover_stalled(self, timeout: timedelta | None = None) -> int:
        """Fail active jobs whose heartbeat is older than *timeout*.

        The normal retry policy then applies, so a crashed or hung worker does
        not hold its slot forever.
        """
        timeout = timeout or timedelta(seconds=settings.STALLED_JOB_TIMEOUT_SECONDS)
        cutoff = self._clock.now() - timeout
        last_seen = func.coalesce(_jobs.c.heartbeat_at, _jobs.c.processed_at)
        with self._begin() as conn:
            stalled = conn.execute(
                select(_jobs.c.id).where(
                    _jobs.c.queue == self.name,
                    _jobs.c.state == JobState.ACTIVE.value,
                    last_seen < cutoff,
                )
            ).scalars().all()

        recovered = 0
        for job_id in stalled:
            try:
                self.fail(job_id, f"Job stalled: no heartbeat for {int(timeout.total_seconds())}s")
                recovered += 1
            except (InvalidJobStateError, NotFoundError):
                continue  # finished between the scan and the update
        return recovered


class JobHandle:
    """A claimed job as seen by the worker processing it."""

    def __init__(self, queue: JobQueue, job: Job, token: str | None = None) -> None:
        self._queue = queue
        self.job = job
        self.token = token

    @property
    def id(self) -> int:
        return self.job.id

    @property
    def payload(self) -> PayrollRunPayload | NotificationPayload:
        return self.job.typed_payload()

    def progress(self, percent: int) -> None:
        self._queue.update_progress(self.job.id, percent, token=self.token)

    def complete(self, result: dict[str, Any]) -> Job:
        return self._queue.complete(self.job.id, result, token=self.token)

    def fail(self, reason: str) -> Job:
        return self._queue.fail(self.job.id, reason, token=self.token)


@dataclass
class Queues:
    """The lanes a process works with; built once and passed around."""

    payroll: JobQueue
    email: JobQueue

    def all(self) -> tuple[JobQueue, ...]:
        return (self.payroll, self.email)

    def connect(self) -> "Queues":
        for queue in self.all():
            queue.connect()
        return self

    def close(self) -> None:
        for queue in self.all():
            queue.close()


def create_queues(engine: Engine, clock: Clock | None = None) -> Queues:
    return Queues(
        payroll=JobQueue(
            engine,
            PAYROLL_QUEUE,
            JobOptions(
                attempts=settings.PAYROLL_JOB_ATTEMPTS,
                backoff_delay_ms=settings.PAYROLL_BACKOFF_MS,
            ),
            clock,
        ),
        email=JobQueue(
            engine,
            EMAIL_QUEUE,
            JobOptions(
                attempts=settings.EMAIL_JOB_ATTEMPTS,
                backoff_delay_ms=settings.EMAIL_BACKOFF_MS,
            ),
            clock,
        ),
    )
