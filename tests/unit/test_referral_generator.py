"""
Unit tests for jobref/services/referral_generator.py

Tests the referral message generator including:
- Generation cache hits (no second completion call)
- Cache partitioning by actor
- Deterministic cleanup of completions
- Credential errors
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from jobref.common.error_handling import GenerationError
from jobref.common.types import ActorScope, JobPosting
from jobref.services.referral_generator import (
    FALLBACK_SKILLS,
    GenerationCacheKey,
    ReferralMessageGenerator,
    build_prompt,
    clean_message,
    skills_from_description,
)


@pytest.fixture
def pool():
    pool = MagicMock()
    pool.complete = AsyncMock(return_value="Hi! I'd love a referral for Backend Engineer at Acme Corp.")
    return pool


@pytest.fixture
def generator(pool, clock):
    return ReferralMessageGenerator(pool, models=["gpt-4o-mini"], cache_ttl=3600, clock=clock, brand="HireJobs")


class TestGenerationCache:
    @pytest.mark.asyncio
    async def test_second_call_is_cache_hit(self, generator, pool, posting, template):
        scope = ActorScope.for_user("user-1")

        first = await generator.generate(posting, template, scope, "sk-test")
        second = await generator.generate(posting, template, scope, "sk-test")

        assert first == second
        assert pool.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_hit_ignores_title_case_and_whitespace(self, generator, pool, posting, template):
        scope = ActorScope.anonymous()
        await generator.generate(posting, template, scope, "sk-test")

        shouted = JobPosting(
            title="  BACKEND ENGINEER ",
            company="acme corp",
            description=posting.description,
        )
        await generator.generate(shouted, template, scope, "sk-test")
        assert pool.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_actors_do_not_share_messages(self, generator, pool, posting, template):
        await generator.generate(posting, template, ActorScope.anonymous(), "sk-test")
        await generator.generate(posting, template, ActorScope.for_user("user-1"), "sk-test")
        await generator.generate(posting, template, ActorScope.with_credential("sk-own"), "sk-own")

        assert pool.complete.await_count == 3
        assert generator.cache_size == 3

    @pytest.mark.asyncio
    async def test_cache_expires(self, generator, pool, posting, template, clock):
        scope = ActorScope.anonymous()
        await generator.generate(posting, template, scope, "sk-test")
        clock.advance(3601)
        await generator.generate(posting, template, scope, "sk-test")
        assert pool.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_scope(self, generator, pool, posting, template):
        scope = ActorScope.for_user("user-1")
        await generator.generate(posting, template, scope, "sk-test")
        await generator.generate(posting, template, ActorScope.anonymous(), "sk-test")

        assert generator.invalidate_scope(scope) == 1
        await generator.generate(posting, template, scope, "sk-test")
        assert pool.complete.await_count == 3

    def test_key_uses_description_fingerprint(self, posting):
        key = GenerationCacheKey.for_posting(posting, ActorScope.anonymous())
        assert key.scope_key == "anon"
        assert key.title == "backend engineer"
        assert posting.description not in repr(key)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_missing_credential(self, generator, pool, posting, template):
        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(posting, template, ActorScope.anonymous(), None)
        assert exc_info.value.reason == "missing_credential"
        pool.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pool_errors_propagate(self, generator, pool, posting, template):
        pool.complete.side_effect = GenerationError("API quota exceeded.", reason="quota")
        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(posting, template, ActorScope.anonymous(), "sk-test")
        assert exc_info.value.reason == "quota"
        assert generator.cache_size == 0

    @pytest.mark.asyncio
    async def test_prompt_and_models_passed_to_pool(self, generator, pool, posting, template):
        await generator.generate(posting, template, ActorScope.anonymous(), "sk-test")
        args, kwargs = pool.complete.call_args
        assert "Job Title: Backend Engineer" in args[0]
        assert template.content in args[0]
        assert kwargs == {"models": ["gpt-4o-mini"], "api_key": "sk-test"}


class TestPromptAndCleanup:
    def test_prompt_mentions_placeholders_and_brand(self, posting, template):
        prompt = build_prompt(posting, template, "HireJobs")
        assert 'Replace {jobTitle} with "Backend Engineer"' in prompt
        assert '{companyName} with "Acme Corp"' in prompt
        assert 'DO NOT mention "HireJobs"' in prompt

    def test_cleanup_removes_artifacts(self, posting):
        text = (
            "Hi,\n\nI hope this email finds you well. I saw the role as advertised on HireJobs.\n\n\n\n"
            "Thanks"
        )
        assert clean_message(text, posting, "HireJobs") == "Hi,\n\nI saw the role.\n\nThanks"

    def test_cleanup_fills_leftover_placeholders(self, posting):
        text = "Referral for {jobTitle} at {companyName}; I know {skills}."
        assert clean_message(text, posting, "HireJobs") == (
            "Referral for Backend Engineer at Acme Corp; I know Python, PostgreSQL, Redis."
        )

    def test_skills_fallback(self):
        bare = JobPosting(title="Engineer", company="Acme", description="No list here")
        assert clean_message("I know {skills}.", bare, "HireJobs") == f"I know {FALLBACK_SKILLS}."

    def test_skills_from_description(self, posting):
        assert skills_from_description(posting.description) == ["Python", "PostgreSQL", "Redis"]
