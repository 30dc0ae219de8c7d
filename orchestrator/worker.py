"""Polling job worker with bounded concurrency, retry backoff and dead-lettering."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from config import WorkerSettings
from core import Job, JobStatus
from utils.exceptions import UnknownJobTypeError

from .store import JobStore

logger = logging.getLogger(__name__)

JobHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_retry_delay(
    retries: int,
    base: float,
    factor: float,
    jitter: float,
    rng: Optional[random.Random] = None,
) -> float:
    """Seconds until the next attempt: ``base * factor**retries`` with multiplicative jitter."""
    delay = float(base) * (float(factor) ** max(0, int(retries)))
    sample = (rng or random).random()
    return max(0.0, delay * (1 + (sample - 0.5) * float(jitter)))


class JobWorker:
    """Single-process worker owning its own lifecycle state.

    ``running`` and ``active_jobs`` live on the instance, so several workers
    (or test doubles) can coexist in one process.
    """

    def __init__(
        self,
        store: JobStore,
        settings: Optional[WorkerSettings] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or WorkerSettings()
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._handlers: Dict[str, JobHandler] = {}
        self._tasks: Set[asyncio.Task] = set()
        # ids claimed by this worker and not yet finished; never stale from our side
        self._in_flight: Set[str] = set()
        self._last_sweep: Optional[datetime] = None
        self.running = False
        self.active_jobs = 0

    def register(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[str(job_type)] = handler
        logger.debug("Registered handler for %s", job_type)

    @property
    def handlers(self) -> Dict[str, JobHandler]:
        return dict(self._handlers)

    def stop(self) -> None:
        """Ask the poll loop to exit; in-flight handlers run to completion."""
        if self.running:
            logger.info("Worker stopping (%d active jobs)", self.active_jobs)
        self.running = False

    async def start(self) -> None:
        """Run the poll loop until ``stop`` is called."""
        self.running = True
        logger.info(
            "Worker started (concurrency=%d, poll_interval=%.1fs, handlers=%s)",
            self.settings.concurrency,
            self.settings.poll_interval,
            sorted(self._handlers),
        )
        try:
            while self.running:
                try:
                    self._maybe_sweep()
                    self._fill_capacity()
                except Exception:
                    logger.exception("Worker poll loop error; pausing %.1fs", self.settings.error_pause)
                    await asyncio.sleep(self.settings.error_pause)
                    continue
                await asyncio.sleep(self.settings.poll_interval)
        finally:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            logger.info("Worker stopped")

    def _claim(self) -> Optional[Job]:
        job = self.store.claim_next(self._clock())
        if job is not None:
            self._in_flight.add(job.id)
            self.active_jobs += 1
        return job

    def _release(self, job: Job) -> None:
        self._in_flight.discard(job.id)
        self.active_jobs -= 1

    def _fill_capacity(self) -> None:
        while self.running and self.active_jobs < self.settings.concurrency:
            job = self._claim()
            if job is None:
                return
            task = asyncio.create_task(self._run_claimed(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_claimed(self, job: Job) -> None:
        try:
            await self._execute(job)
        finally:
            self._release(job)

    async def process_next(self) -> Optional[Job]:
        """Claim one eligible job and run it to completion; returns its final record."""
        job = self._claim()
        if job is None:
            return None
        try:
            return await self._execute(job)
        finally:
            self._release(job)

    async def drain(self, max_jobs: int = 1000) -> int:
        """Process eligible jobs sequentially until none remain."""
        processed = 0
        while processed < max_jobs:
            if await self.process_next() is None:
                break
            processed += 1
        return processed

    async def _execute(self, job: Job) -> Optional[Job]:
        logger.info("Processing job %s (%s, attempt %d/%d)", job.id, job.type, job.retries + 1, job.max_retries)
        try:
            handler = self._handlers.get(job.type)
            if handler is None:
                raise UnknownJobTypeError(job.type)
            result = handler(dict(job.payload))
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.warning("Job %s (%s) failed: %s", job.id, job.type, reason)
            return self.handle_failure(job, reason)

        done = self.store.complete(job.id, self._clock())
        if done is None:
            logger.warning("Job %s (%s) finished but was no longer processing; result dropped", job.id, job.type)
            return self.store.get(job.id)
        logger.info("Job %s (%s) completed", job.id, job.type)
        return done

    def handle_failure(self, job: Job, reason: str) -> Optional[Job]:
        """Count one failure: reschedule with backoff, or dead-letter when the budget is spent."""
        now = self._clock()
        retries = job.retries + 1
        if retries >= job.max_retries:
            logger.warning(
                "Job %s (%s) moved to dead letter after %d attempts: %s",
                job.id,
                job.type,
                retries,
                reason,
            )
            return self.store.dead_letter(job.id, retries=retries, error=reason, now=now)

        delay = compute_retry_delay(
            retries,
            self.settings.backoff_base,
            self.settings.backoff_factor,
            self.settings.backoff_jitter,
            self._rng,
        )
        next_run_at = now + timedelta(seconds=delay)
        logger.info("Job %s (%s) retry %d/%d in %.1fs", job.id, job.type, retries, job.max_retries, delay)
        return self.store.reschedule(job.id, retries=retries, next_run_at=next_run_at, error=reason, now=now)

    def _maybe_sweep(self) -> None:
        now = self._clock()
        if self._last_sweep and (now - self._last_sweep).total_seconds() < self.settings.sweep_interval:
            return
        self._last_sweep = now
        self.sweep_stale()

    def sweep_stale(self) -> List[str]:
        """Route jobs stuck in ``processing`` past ``stale_after`` through the failure path."""
        now = self._clock()
        cutoff = now - timedelta(seconds=self.settings.stale_after)
        swept: List[str] = []
        for job in self.store.list_stale(cutoff):
            if job.status != JobStatus.PROCESSING or job.id in self._in_flight:
                continue
            reason = f"stale: processing exceeded {int(self.settings.stale_after)}s"
            if self.handle_failure(job, reason) is not None:
                swept.append(job.id)
        if swept:
            logger.warning("Stale sweep requeued %d job(s): %s", len(swept), ", ".join(swept))
        return swept
