from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from ..common.datetime_utils import Clock, SystemClock
from ..core.constants import DEFAULT_SCHEDULER_POLL_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class PeriodicJob:
    name: str
    interval: timedelta
    func: Callable[[], Any]
    next_run_at: Optional[datetime] = None
    last_result: Any = None

    def is_due(self, now: datetime) -> bool:
        return self.next_run_at is None or now >= self.next_run_at


class FeeScheduler:
    """Owns the periodic fee passes.

    ``run_pending`` runs every due job inline and is what tests drive with a
    frozen clock. ``start`` polls on a daemon thread and hands each due job to
    its own worker thread, so passes may overlap.
    """

    def __init__(
        self,
        jobs: Sequence[PeriodicJob],
        *,
        clock: Optional[Clock] = None,
        poll_seconds: float = DEFAULT_SCHEDULER_POLL_SECONDS,
        run_on_start: bool = True,
    ):
        names = [job.name for job in jobs]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate job names: {names}")
        self._jobs = list(jobs)
        self._clock = clock or SystemClock()
        self._poll_seconds = float(poll_seconds)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._workers: list[threading.Thread] = []
        self._lock = threading.Lock()

        if not run_on_start:
            now = self._clock.now()
            for job in self._jobs:
                if job.next_run_at is None:
                    job.next_run_at = now + job.interval

    @property
    def jobs(self) -> list[PeriodicJob]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def job(self, name: str) -> PeriodicJob:
        for job in self._jobs:
            if job.name == name:
                return job
        raise KeyError(name)

    def _claim_due_jobs(self) -> list[PeriodicJob]:
        now = self._clock.now()
        due = []
        with self._lock:
            for job in self._jobs:
                if job.is_due(now):
                    # Scheduled from the tick, not from completion.
                    job.next_run_at = now + job.interval
                    due.append(job)
        return due

    def _run_job(self, job: PeriodicJob) -> Any:
        logger.info("Running job %s", job.name)
        try:
            result = job.func()
        except Exception:
            logger.exception("Job %s failed", job.name)
            return None
        job.last_result = result
        return result

    def run_pending(self) -> dict[str, Any]:
        """Run every due job on the calling thread. Returns results by job name."""
        return {job.name: self._run_job(job) for job in self._claim_due_jobs()}

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            for job in self._claim_due_jobs():
                worker = threading.Thread(target=self._run_job, args=(job,), name=f"fee-job-{job.name}", daemon=True)
                worker.start()
                with self._lock:
                    self._workers.append(worker)
            with self._lock:
                self._workers = [w for w in self._workers if w.is_alive()]
            self._stop_event.wait(self._poll_seconds)

    def start(self) -> None:
        if self.running:
            if self._stop_event.is_set():
                logger.warning("Fee scheduler is still stopping, not starting a second loop")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="fee-scheduler", daemon=True)
        self._thread.start()
        logger.info("Fee scheduler started with jobs %s", [job.name for job in self._jobs])

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the loop to stop and wait for it and its workers.

        Returns False when ``timeout`` ran out with threads still alive; the
        loop thread is kept so a later ``start`` cannot spawn a second one.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if not self._thread.is_alive():
                self._thread = None
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)
        with self._lock:
            self._workers = [w for w in self._workers if w.is_alive()]
            stopped = self._thread is None and not self._workers
        if stopped:
            logger.info("Fee scheduler stopped")
        else:
            logger.warning("Fee scheduler did not stop within %ss", timeout)
        return stopped
