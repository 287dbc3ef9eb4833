"""
Unit tests for jobref/cache/manager.py and jobref/cache/models.py

Tests the in-memory referral job manager including:
- Idempotent submit (one background run per key under concurrency)
- Poll state transitions (Processing -> CompletedSuccess / CompletedFailure)
- Staleness recovery (stale Processing evicted, resubmit starts a new run)
- TTL expiry with separate success / failure TTLs
- Invalidation (actor entry plus the anonymous entry)
- Shutdown (aclose cancels in-flight runs)
"""

import asyncio

import pytest

from jobref.cache.manager import ReferralJobManager
from jobref.cache.models import (
    CompletedFailure,
    CompletedSuccess,
    JobCacheKey,
    JobStatus,
    Processing,
    is_job_board_url,
    job_id_from_url,
    require_job_board_url,
)
from jobref.common.error_handling import FetchError, ValidationError
from jobref.common.types import ActorScope, ReferralResult

JOB_URL = "https://hirejobs.in/jobs/backend-engineer-123?ref=feed#apply"


class ControlledPipeline:
    """Pipeline whose runs finish only when released."""

    def __init__(self):
        self.calls = []
        self._events = []

    async def __call__(self, job_url, scope):
        event = asyncio.Event()
        self._events.append(event)
        self.calls.append((job_url, scope))
        run_number = len(self.calls)
        await event.wait()
        return ReferralResult(
            title=f"Engineer #{run_number}",
            company="Acme",
            referral_message="Hello",
        )

    def release(self, index=None):
        events = self._events if index is None else [self._events[index]]
        for event in events:
            event.set()


async def immediate_success(job_url, scope):
    return ReferralResult(title="Engineer", company="Acme", referral_message="Hello there")


async def immediate_failure(job_url, scope):
    raise FetchError("Job page returned status 500")


class TestJobIdFromUrl:
    @pytest.mark.parametrize("url,expected", [
        ("https://hirejobs.in/jobs/backend-engineer-123", "backend-engineer-123"),
        ("https://hirejobs.in/jobs/backend-engineer-123/", "backend-engineer-123"),
        ("https://hirejobs.in/jobs/abc?utm=1#top", "abc"),
        ("https://hirejobs.in/", "unknown"),
        ("", "unknown"),
    ])
    def test_trailing_segment(self, url, expected):
        assert job_id_from_url(url) == expected

    def test_key_partitions_by_scope(self):
        anon = JobCacheKey.for_request(JOB_URL, ActorScope.anonymous())
        user = JobCacheKey.for_request(JOB_URL, ActorScope.for_user("7"))
        assert anon != user
        assert str(user) == "user:7:job:backend-engineer-123"


class TestJobBoardUrl:
    @pytest.mark.parametrize("url", [
        "https://hirejobs.in/jobs/backend-engineer-123",
        "https://www.hirejobs.in/jobs/abc123/",
        "http://HireJobs.in/jobs/abc?utm=1#top",
    ])
    def test_posting_urls_accepted(self, url):
        assert is_job_board_url(url)

    @pytest.mark.parametrize("url", [
        "http://169.254.169.254/latest/meta-data/iam",
        "http://localhost:27017/x",
        "https://evil.example/jobs/1",
        "https://hirejobs.in.evil.example/jobs/1",
        "https://user@hirejobs.in/jobs/1",
        "https://hirejobs.in:8443/jobs/1",
        "https://hirejobs.in/",
        "https://hirejobs.in/jobs/1/apply",
        "ftp://hirejobs.in/jobs/1",
        "",
    ])
    def test_other_urls_rejected(self, url):
        assert not is_job_board_url(url)
        with pytest.raises(ValidationError, match="Only HireJobs.in URLs are supported"):
            require_job_board_url(url)

    def test_hosts_override(self):
        assert is_job_board_url("https://jobs.example.com/jobs/42", hosts=["jobs.example.com"])
        assert not is_job_board_url("https://hirejobs.in/jobs/42", hosts=["jobs.example.com"])


class TestEntrySerialization:
    def test_entries_serialize_without_clock_readings(self):
        entries = [
            Processing(job_id="abc", started_at=1.0),
            CompletedSuccess(job_id="abc", title="Engineer", company="Acme", referral_message="Hi", completed_at=2.0),
            CompletedFailure(job_id="abc", error_message="boom", completed_at=2.0),
        ]
        for entry in entries:
            data = entry.to_dict()
            assert "startedAt" not in data
            assert "completedAt" not in data
            assert data["jobId"] == "abc"


class TestSubmit:
    @pytest.mark.asyncio
    async def test_concurrent_submits_start_one_run(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock)
        scope = ActorScope.for_user("1")

        results = await asyncio.gather(*[manager.submit(JOB_URL, scope) for _ in range(10)])
        await asyncio.sleep(0)

        assert all(r.accepted for r in results)
        assert sum(r.started for r in results) == 1
        assert {r.job_id for r in results} == {"backend-engineer-123"}
        assert len(pipeline.calls) == 1
        assert manager.active_tasks == 1

        pipeline.release()
        await manager.wait_idle()
        assert manager.active_tasks == 0

    @pytest.mark.asyncio
    async def test_submit_does_not_wait_for_pipeline(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock)

        result = await asyncio.wait_for(manager.submit(JOB_URL, ActorScope.anonymous()), timeout=1)

        assert result.started
        entry = await manager.poll(JOB_URL, ActorScope.anonymous())
        assert isinstance(entry, Processing)
        assert entry.status == JobStatus.PROCESSING
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_different_actors_get_separate_runs(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock)

        await manager.submit(JOB_URL, ActorScope.anonymous())
        await manager.submit(JOB_URL, ActorScope.for_user("1"))
        await manager.submit(JOB_URL, ActorScope.with_credential("sk-custom", user_id="1"))
        await asyncio.sleep(0)

        assert len(pipeline.calls) == 3
        await manager.aclose()

    @pytest.mark.asyncio
    async def test_completed_entry_is_not_rerun(self, clock):
        calls = []

        async def pipeline(job_url, scope):
            calls.append(job_url)
            return await immediate_success(job_url, scope)

        manager = ReferralJobManager(pipeline, clock=clock)
        await manager.submit(JOB_URL, ActorScope.anonymous())
        await manager.wait_idle()

        again = await manager.submit(JOB_URL, ActorScope.anonymous())
        assert again.started is False
        assert len(calls) == 1


class TestPoll:
    @pytest.mark.asyncio
    async def test_unknown_job_is_none(self, clock):
        manager = ReferralJobManager(immediate_success, clock=clock)
        assert await manager.poll(JOB_URL, ActorScope.anonymous()) is None

    @pytest.mark.asyncio
    async def test_success_entry(self, clock):
        manager = ReferralJobManager(immediate_success, clock=clock)
        await manager.submit(JOB_URL, ActorScope.anonymous())
        await manager.wait_idle()

        entry = await manager.poll(JOB_URL, ActorScope.anonymous())
        assert isinstance(entry, CompletedSuccess)
        assert entry.success is True
        assert entry.to_dict()["referralMessage"] == "Hello there"
        assert entry.to_dict()["jobTitle"] == "Engineer"

    @pytest.mark.asyncio
    async def test_failure_entry_keeps_error_text_and_is_not_retried(self, clock):
        calls = []

        async def pipeline(job_url, scope):
            calls.append(job_url)
            return await immediate_failure(job_url, scope)

        manager = ReferralJobManager(pipeline, clock=clock)
        await manager.submit(JOB_URL, ActorScope.anonymous())
        await manager.wait_idle()

        entry = await manager.poll(JOB_URL, ActorScope.anonymous())
        assert isinstance(entry, CompletedFailure)
        assert entry.success is False
        assert entry.error_message == "Job page returned status 500"
        assert entry.to_dict()["status"] == "completed"

        resubmitted = await manager.submit(JOB_URL, ActorScope.anonymous())
        assert resubmitted.started is False
        assert len(calls) == 1


class TestStaleness:
    @pytest.mark.asyncio
    async def test_stale_processing_evicted_and_resubmit_starts_new_run(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock, stale_after=120)
        scope = ActorScope.anonymous()

        await manager.submit(JOB_URL, scope)
        clock.advance(119)
        assert isinstance(await manager.poll(JOB_URL, scope), Processing)

        clock.advance(2)
        assert await manager.poll(JOB_URL, scope) is None

        resubmitted = await manager.submit(JOB_URL, scope)
        await asyncio.sleep(0)
        assert resubmitted.started is True
        assert len(pipeline.calls) == 2

        await manager.aclose()

    @pytest.mark.asyncio
    async def test_late_result_of_evicted_run_is_discarded(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock, stale_after=120)
        scope = ActorScope.anonymous()

        await manager.submit(JOB_URL, scope)
        await asyncio.sleep(0)
        clock.advance(121)
        await manager.submit(JOB_URL, scope)
        await asyncio.sleep(0)

        # The first (stale) run finishes after the second one started
        pipeline.release(0)
        await asyncio.sleep(0.01)
        assert isinstance(await manager.poll(JOB_URL, scope), Processing)

        pipeline.release(1)
        await manager.wait_idle()
        entry = await manager.poll(JOB_URL, scope)
        assert isinstance(entry, CompletedSuccess)
        assert entry.title == "Engineer #2"


class TestTTL:
    @pytest.mark.asyncio
    async def test_failure_expires_before_success(self, clock):
        other_url = "https://hirejobs.in/jobs/frontend-456"

        async def pipeline(job_url, scope):
            if job_url == other_url:
                return await immediate_failure(job_url, scope)
            return await immediate_success(job_url, scope)

        manager = ReferralJobManager(pipeline, clock=clock, success_ttl=10, failure_ttl=5)
        scope = ActorScope.anonymous()
        await manager.submit(JOB_URL, scope)
        await manager.submit(other_url, scope)
        await manager.wait_idle()

        clock.advance(6)
        assert isinstance(await manager.poll(JOB_URL, scope), CompletedSuccess)
        assert await manager.poll(other_url, scope) is None

        clock.advance(5)
        assert await manager.poll(JOB_URL, scope) is None


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_user_invalidation_also_clears_anonymous_entry(self, clock):
        manager = ReferralJobManager(immediate_success, clock=clock)
        user = ActorScope.for_user("1")
        other = ActorScope.for_user("2")
        for scope in (ActorScope.anonymous(), user, other):
            await manager.submit(JOB_URL, scope)
        await manager.wait_idle()

        assert await manager.invalidate(JOB_URL, user) is True

        assert await manager.poll(JOB_URL, user) is None
        assert await manager.poll(JOB_URL, ActorScope.anonymous()) is None
        assert isinstance(await manager.poll(JOB_URL, other), CompletedSuccess)

    @pytest.mark.asyncio
    async def test_invalidate_missing_returns_false(self, clock):
        manager = ReferralJobManager(immediate_success, clock=clock)
        assert await manager.invalidate(JOB_URL, ActorScope.anonymous()) is False


class TestShutdown:
    @pytest.mark.asyncio
    async def test_aclose_cancels_in_flight_runs(self, clock):
        pipeline = ControlledPipeline()
        manager = ReferralJobManager(pipeline, clock=clock)
        await manager.submit(JOB_URL, ActorScope.anonymous())
        await asyncio.sleep(0)
        assert manager.active_tasks == 1

        await manager.aclose()
        assert manager.active_tasks == 0
