"""
Referral Message Generator

Turns a validated JobPosting and a template into a referral request message
via the completion client pool, then runs a deterministic cleanup pass.

Results are cached per actor: two actors asking about the same posting
never share a message, since their templates and credentials differ.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from jobref.cache.store import Clock, TTLStore
from jobref.common.config import Config
from jobref.common.error_handling import GenerationError
from jobref.common.fingerprint import description_fingerprint
from jobref.common.llm_factory import CompletionClientPool
from jobref.common.types import ActorScope, JobPosting, Template

logger = logging.getLogger(__name__)

SKILL_COUNT = 3
FALLBACK_SKILLS = "the skills this role calls for"

PROMPT_TEMPLATE = """
You are tasked with creating a professional and personalized referral request message.

JOB POSTING DETAILS:
---
Company: {company}
Job Title: {title}
Job Description:
{description}
---

TEMPLATE:
{template}

INSTRUCTIONS:
1. Analyze the job description and identify key skills or qualifications needed for this position.
2. Create a professionally-worded message following the provided template.
3. Replace {{jobTitle}} with "{title}", {{companyName}} with "{company}", and {{skills}} with {skill_count} of the most relevant skills from the job description.
4. Keep the structure and format of the template, only replacing the placeholder variables.
5. DO NOT mention "{brand}" or any job board website in your message.
6. Keep any existing formatting and structure from the template.
"""

_HOPE_THIS_FINDS_YOU = re.compile(r"I hope this (email|message|note) finds you well\.\s*", re.IGNORECASE)
_SOURCE_FRAGMENT = re.compile(r"\s*as (advertised|posted) on\s*\.", re.IGNORECASE)
_EXTRA_NEWLINES = re.compile(r"\n\n\n+")


@dataclass(frozen=True)
class GenerationCacheKey:
    """(actor, job title, company, description fingerprint); text fields lower-cased."""

    scope_key: str
    title: str
    company: str
    description_fingerprint: str

    @classmethod
    def for_posting(cls, posting: JobPosting, scope: ActorScope) -> "GenerationCacheKey":
        return cls(
            scope_key=scope.scope_key(),
            title=(posting.title or "").strip().lower(),
            company=(posting.company or "").strip().lower(),
            description_fingerprint=description_fingerprint(posting.description or ""),
        )


def build_prompt(posting: JobPosting, template: Template, brand: Optional[str] = None) -> str:
    return PROMPT_TEMPLATE.format(
        company=posting.company,
        title=posting.title,
        description=posting.description,
        template=template.content,
        skill_count=SKILL_COUNT,
        brand=brand or Config.SITE_BRAND,
    )


def skills_from_description(description: str, limit: int = SKILL_COUNT) -> List[str]:
    """Items of a "Skills:" or "Skills Required:" block in the description, if any."""
    match = re.search(r"skills(?:\s+required)?:\s*\n(.+?)(?:\n\n|$)", description or "", re.IGNORECASE | re.DOTALL)
    if not match:
        return []
    skills = [line.strip().lstrip("-*• ").strip() for line in match.group(1).splitlines()]
    return [skill for skill in skills if skill][:limit]


def clean_message(text: str, posting: JobPosting, brand: Optional[str] = None) -> str:
    """
    Deterministic post-processing of a completion.

    Fills any placeholder the completion left behind, removes the site brand,
    "as advertised on ." fragments and "I hope this ... finds you well."
    openers, and collapses runs of blank lines.
    """
    brand = brand if brand is not None else Config.SITE_BRAND
    skills = skills_from_description(posting.description)

    cleaned = (
        text.replace("{jobTitle}", posting.title)
        .replace("{companyName}", posting.company)
        .replace("{skills}", ", ".join(skills) if skills else FALLBACK_SKILLS)
    )
    if brand:
        cleaned = re.sub(re.escape(brand), "", cleaned, flags=re.IGNORECASE)
    cleaned = _SOURCE_FRAGMENT.sub(".", cleaned)
    cleaned = _HOPE_THIS_FINDS_YOU.sub("", cleaned)
    cleaned = _EXTRA_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


class ReferralMessageGenerator:
    """
    Generates referral messages with a per-actor result cache.

    Usage:
        generator = ReferralMessageGenerator(pool)
        message = await generator.generate(posting, template, scope, credential)
    """

    def __init__(
        self,
        pool: Optional[CompletionClientPool] = None,
        models: Optional[List[str]] = None,
        cache_ttl: Optional[float] = None,
        clock: Optional[Clock] = None,
        brand: Optional[str] = None,
    ):
        self.pool = pool or CompletionClientPool()
        self.models = list(models or Config.REFERRAL_MODELS)
        self.brand = brand if brand is not None else Config.SITE_BRAND
        ttl = cache_ttl if cache_ttl is not None else Config.JOB_CACHE_TTL_SECONDS
        self._cache: TTLStore[GenerationCacheKey, str] = TTLStore(ttl, clock=clock)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def generate(
        self,
        posting: JobPosting,
        template: Template,
        scope: ActorScope,
        credential: Optional[str],
    ) -> str:
        """
        Generate (or reuse) the referral message for a posting.

        Args:
            posting: Validated job posting
            template: Template to follow
            scope: Requesting actor (cache partition)
            credential: Completion API key for the actor

        Returns:
            Cleaned referral message

        Raises:
            GenerationError: missing/invalid credential, quota, no model available
        """
        key = GenerationCacheKey.for_posting(posting, scope)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit for: {posting.title} at {posting.company} ({key.scope_key})")
            return cached

        if not credential:
            raise GenerationError(
                "No API key available. Please add an API key in your account settings.",
                reason="missing_credential",
            )

        logger.info(f"Generating referral message for {posting.title} at {posting.company} ({key.scope_key})")
        prompt = build_prompt(posting, template, self.brand)
        text = await self.pool.complete(prompt, models=self.models, api_key=credential)

        message = clean_message(text, posting, self.brand)
        if not message:
            raise GenerationError("Completion returned an empty message", reason="failed")

        self._cache.set(key, message)
        return message

    def invalidate_scope(self, scope: ActorScope) -> int:
        """Drop every cached message generated for an actor."""
        scope_key = scope.scope_key()
        return self._cache.delete_where(lambda key: key.scope_key == scope_key)
