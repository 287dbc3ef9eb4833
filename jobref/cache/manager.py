"""
Referral Job Manager

Turns the slow fetch -> extract -> generate sequence into a two-phase
submit/poll protocol:

- submit() records a Processing entry and spawns one detached background
  task per key; it never waits for the pipeline.
- poll() reports the current entry; a Processing entry older than
  stale_after is evicted and reported as absent so the client resubmits.
- the background task replaces Processing with CompletedSuccess (success
  TTL) or CompletedFailure (failure TTL). Failures are never retried.

Check-then-insert happens under one asyncio.Lock, so concurrent submits for
the same key start at most one run.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from jobref.cache.models import (
    CompletedFailure,
    CompletedSuccess,
    JobCacheEntry,
    JobCacheKey,
    Processing,
    SubmitResult,
)
from jobref.cache.store import Clock, TTLStore
from jobref.common.config import Config
from jobref.common.error_handling import error_message
from jobref.common.logger import get_logger
from jobref.common.types import ActorScope, ReferralResult

logger = logging.getLogger(__name__)

Pipeline = Callable[[str, ActorScope], Awaitable[ReferralResult]]


class ReferralJobManager:
    """
    In-memory, idempotent job cache with background execution.

    State is process-local and lost on restart; clients recover by polling
    (NotFound) and resubmitting.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        clock: Optional[Clock] = None,
        success_ttl: Optional[float] = None,
        failure_ttl: Optional[float] = None,
        stale_after: Optional[float] = None,
    ):
        """
        Initialize the manager.

        Args:
            pipeline: async (job_url, scope) -> ReferralResult
            clock: Time source shared with the entry store (defaults to time.monotonic)
            success_ttl: Seconds a success stays cached
            failure_ttl: Seconds a failure stays cached
            stale_after: Seconds after which a Processing entry is considered dead
        """
        self._pipeline = pipeline
        self.success_ttl = success_ttl if success_ttl is not None else Config.JOB_CACHE_TTL_SECONDS
        self.failure_ttl = failure_ttl if failure_ttl is not None else Config.JOB_FAILURE_TTL_SECONDS
        self.stale_after = stale_after if stale_after is not None else Config.STALE_PROCESSING_SECONDS

        self._entries: TTLStore[JobCacheKey, Any] = TTLStore(self.success_ttl, clock=clock)
        self.clock = self._entries.clock
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_tasks(self) -> int:
        """Number of background runs still in flight."""
        return sum(1 for task in self._tasks if not task.done())

    def _live_entry(self, key: JobCacheKey) -> Optional[JobCacheEntry]:
        """Current entry for key, evicting a stale Processing entry."""
        entry = self._entries.get(key)
        if isinstance(entry, Processing) and entry.is_stale(self.clock(), self.stale_after):
            logger.warning(
                f"Evicting stale processing entry {key} "
                f"(started {self.clock() - entry.started_at:.0f}s ago)"
            )
            self._entries.delete(key)
            return None
        return entry

    async def submit(self, job_url: str, scope: ActorScope) -> SubmitResult:
        """
        Accept a referral job for (job, actor).

        Starts a background run unless a fresh Processing entry or an
        unexpired terminal entry already exists for the key.

        Args:
            job_url: Posting URL
            scope: Requesting actor

        Returns:
            SubmitResult (accepted is always True)
        """
        key = JobCacheKey.for_request(job_url, scope)

        async with self._lock:
            existing = self._live_entry(key)
            if existing is not None:
                logger.info(f"Job {key} already {existing.status.value}; not starting a new run")
                return SubmitResult(job_id=key.job_id, accepted=True, started=False)

            entry = Processing(job_id=key.job_id, started_at=self.clock())
            self._entries.set(key, entry, ttl=self.success_ttl)
            task = asyncio.create_task(self._run(key, entry, job_url, scope))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        logger.info(f"Started referral job {key}")
        return SubmitResult(job_id=key.job_id, accepted=True, started=True)

    async def poll(self, job_url: str, scope: ActorScope) -> Optional[JobCacheEntry]:
        """
        Current state of (job, actor).

        Returns:
            The entry, or None when absent, expired or stale
        """
        key = JobCacheKey.for_request(job_url, scope)
        async with self._lock:
            return self._live_entry(key)

    async def invalidate(self, job_url: str, scope: ActorScope) -> bool:
        """
        Drop the cached entry for (job, actor).

        For a non-anonymous actor the anonymous entry of the same job is
        dropped as well, so a later anonymous request does not serve a
        message generated before the actor changed their settings.

        Returns:
            True if any entry existed
        """
        keys = [JobCacheKey.for_request(job_url, scope)]
        if not scope.is_anonymous:
            keys.append(JobCacheKey.for_request(job_url, ActorScope.anonymous()))

        async with self._lock:
            removed = [self._entries.delete(key) for key in keys]

        logger.info(f"Invalidated cache for {keys[0]} (removed={sum(removed)})")
        return any(removed)

    async def _run(self, key: JobCacheKey, started: Processing, job_url: str, scope: ActorScope) -> None:
        """Background run: pipeline -> terminal entry. Never raises."""
        log = get_logger(__name__, job_id=str(key), stage="run")
        try:
            result = await self._pipeline(job_url, scope)
        except asyncio.CancelledError:
            log.warning("Background run cancelled")
            raise
        except Exception as e:
            log.error(f"Referral job failed: {e}")
            terminal: JobCacheEntry = CompletedFailure(
                job_id=key.job_id,
                error_message=error_message(e),
                completed_at=self.clock(),
            )
            ttl = self.failure_ttl
        else:
            log.info(f"Referral job completed: {result.title} at {result.company}")
            terminal = CompletedSuccess(
                job_id=key.job_id,
                title=result.title,
                company=result.company,
                referral_message=result.referral_message,
                completed_at=self.clock(),
            )
            ttl = self.success_ttl

        async with self._lock:
            # Only replace our own Processing entry; an invalidated or
            # stale-evicted run must not overwrite a newer one.
            if self._entries.get(key) is started:
                self._entries.set(key, terminal, ttl=ttl)
            else:
                log.info("Entry replaced or invalidated while running; discarding result")

    async def wait_idle(self) -> None:
        """Wait for every in-flight background run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding background runs (process shutdown)."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} background referral job(s)")
        self._entries.clear()
