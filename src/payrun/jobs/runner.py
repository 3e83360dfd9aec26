"""Background lanes: one polling thread per queue, plus a maintenance sweeper.

Contract:
    - ``QueueWorker.run_once()`` claims and processes at most one job.
    - ``LaneRunner.start()`` / ``stop()`` drive a worker on a daemon thread;
      ``stop()`` lets the job in hand finish before returning.
    - ``Sweeper`` purges old terminal jobs and recovers stalled ones on an
      interval.

Each runner processes jobs strictly one at a time. Lanes that may run in
parallel (payroll, email) get separate runners.
"""
from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod

from payrun.config import settings
from payrun.domain.jobs import Job
from payrun.jobs.queue import JobHandle, JobQueue, Queues

logger = logging.getLogger(__name__)


class QueueWorker(ABC):
    """Claims jobs of one kind from one queue."""

    job_name: str | None = None

    def __init__(self, queue: JobQueue) -> None:
        self.queue = queue
        self.worker_id = f"{queue.name}-{uuid.uuid4().hex[:8]}"

    def run_once(self) -> Job | None:
        """Process the next job, if any. Returns the job in its final state."""
        job = self.queue.claim_next(self.job_name, worker_id=self.worker_id)
        if job is None:
            return None
        return self.process(JobHandle(self.queue, job, token=self.worker_id))

    def drain(self, max_jobs: int | None = None) -> list[Job]:
        """Process claimable jobs until the lane is idle (for CLI use and tests)."""
        done: list[Job] = []
        while max_jobs is None or len(done) < max_jobs:
            job = self.run_once()
            if job is None:
                break
            done.append(job)
        return done

    @abstractmethod
    def process(self, handle: JobHandle) -> Job:
        """Run one claimed job; must end in ``complete`` or ``fail``."""


class _Loop:
    name = "loop"

    def __init__(self, interval: float) -> None:
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("%s started", self.name)

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("%s stopped", self.name)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            busy = False
            try:
                busy = self.tick()
            except Exception:
                logger.exception("%s tick failed", self.name)
            if not busy:
                self._stop_event.wait(timeout=self._interval)

    def tick(self) -> bool:
        raise NotImplementedError


class LaneRunner(_Loop):
    """Drives one worker; polls when the lane is idle, loops at once when busy."""

    def __init__(self, worker: QueueWorker, poll_interval: float | None = None) -> None:
        super().__init__(poll_interval if poll_interval is not None else settings.WORKER_POLL_INTERVAL)
        self.worker = worker
        self.name = f"lane-{worker.queue.name}"

    def tick(self) -> bool:
        return self.worker.run_once() is not None


class Sweeper(_Loop):
    name = "queue-sweeper"

    def __init__(self, queues: Queues, interval: float | None = None) -> None:
        super().__init__(interval if interval is not None else settings.CLEANUP_INTERVAL_SECONDS)
        self._queues = queues

    def tick(self) -> bool:
        for queue in self._queues.all():
            queue.sweep()
            recovered = queue.recover_stalled()
            if recovered:
                logger.warning("Recovered %d stalled job(s) on %s", recovered, queue.name)
        return False
