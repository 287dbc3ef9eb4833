"""
Referral Service

Pipeline: fetch page -> fuse extraction -> resolve template and credential
-> generate message. The slow pipeline runs in the background behind the
job manager's submit/poll protocol.

All components are injected; build_referral_service() wires the concrete
ones once at process start.
"""

import logging
from typing import Optional

from jobref.cache.manager import ReferralJobManager
from jobref.cache.models import JobCacheEntry, SubmitResult, require_job_board_url
from jobref.cache.store import Clock
from jobref.common.config import Config
from jobref.common.error_handling import log_on_exception
from jobref.common.llm_factory import CompletionClientPool
from jobref.common.logger import get_logger
from jobref.common.repositories import get_template_repository
from jobref.common.types import ActorScope, ReferralResult
from jobref.extraction.fusion import FusionEngine
from jobref.services.credentials import CredentialResolver, StaticCredentialResolver
from jobref.services.page_fetcher import PageFetcher, create_page_fetcher
from jobref.services.referral_generator import ReferralMessageGenerator
from jobref.services.templates import TemplateResolver

logger = logging.getLogger(__name__)


class ReferralService:
    """
    Owns the job manager and runs the referral pipeline.

    Usage:
        service = build_referral_service()
        submitted = await service.submit_referral_job(url, scope)
        entry = await service.poll_referral_job(url, scope)
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        engine: FusionEngine,
        generator: ReferralMessageGenerator,
        templates: TemplateResolver,
        credentials: CredentialResolver,
        config=Config,
        clock: Optional[Clock] = None,
    ):
        self.fetcher = fetcher
        self.engine = engine
        self.generator = generator
        self.templates = templates
        self.credentials = credentials
        self.config = config
        self.jobs = ReferralJobManager(
            self.run,
            clock=clock,
            success_ttl=config.JOB_CACHE_TTL_SECONDS,
            failure_ttl=config.JOB_FAILURE_TTL_SECONDS,
            stale_after=config.STALE_PROCESSING_SECONDS,
        )

    async def run(self, job_url: str, scope: ActorScope) -> ReferralResult:
        """
        Run the whole pipeline for one posting, in the foreground.

        Raises:
            FetchError, ExtractionError, GenerationError: from the failing stage
        """
        fetch_log = get_logger(__name__, job_id=job_url, stage="fetch")
        with log_on_exception(fetch_log.logger, f"fetch {job_url}"):
            html = await self.fetcher.fetch(job_url)

        extract_log = get_logger(__name__, job_id=job_url, stage="extract")
        with log_on_exception(extract_log.logger, f"extract {job_url}"):
            posting = await self.engine.extract(html)
        extract_log.info(f"Extracted: {posting.title} at {posting.company}")

        template = self.templates.resolve(scope)
        credential = self.credentials.resolve(scope)

        generate_log = get_logger(__name__, job_id=job_url, stage="generate")
        generate_log.info(f"Using template {template.id} for {scope.scope_key()}")
        with log_on_exception(generate_log.logger, f"generate {job_url}"):
            message = await self.generator.generate(posting, template, scope, credential)

        return ReferralResult(
            title=posting.title,
            company=posting.company,
            referral_message=message,
            posting=posting,
        )

    async def submit_referral_job(self, job_url: str, scope: ActorScope) -> SubmitResult:
        """
        Accept a background run for (job, actor).

        Raises:
            ValidationError: if job_url is not a job board posting
        """
        return await self.jobs.submit(require_job_board_url(job_url), scope)

    async def poll_referral_job(self, job_url: str, scope: ActorScope) -> Optional[JobCacheEntry]:
        return await self.jobs.poll(job_url, scope)

    async def invalidate(self, job_url: str, scope: ActorScope) -> bool:
        """
        Clear cached results for (job, actor).

        Also drops the actor's cached messages, so the next run regenerates
        with the current template and credential.
        """
        removed = await self.jobs.invalidate(job_url, scope)
        self.generator.invalidate_scope(scope)
        if not scope.is_anonymous:
            self.generator.invalidate_scope(ActorScope.anonymous())
        return removed

    async def aclose(self) -> None:
        await self.jobs.aclose()
        await self.fetcher.aclose()


def build_referral_service(config=Config) -> ReferralService:
    """
    Wire the concrete components from configuration.

    Args:
        config: Configuration class or object exposing the Config attributes

    Returns:
        ReferralService
    """
    fetcher = create_page_fetcher(
        config.FETCHER_BACKEND,
        max_concurrency=config.FETCH_MAX_CONCURRENCY,
    )
    engine = FusionEngine(brand=config.SITE_BRAND)
    pool = CompletionClientPool(
        base_url=config.get_llm_base_url(),
        temperature=config.REFERRAL_TEMPERATURE,
        max_tokens=config.REFERRAL_MAX_TOKENS,
    )
    generator = ReferralMessageGenerator(
        pool,
        models=config.REFERRAL_MODELS,
        cache_ttl=config.JOB_CACHE_TTL_SECONDS,
        brand=config.SITE_BRAND,
    )
    templates = TemplateResolver(get_template_repository(config.MONGODB_URI or None))
    credentials = StaticCredentialResolver(default_key=config.get_llm_api_key())

    logger.info(
        f"Referral service ready: fetcher={type(fetcher).__name__}, "
        f"templates={type(templates.repository).__name__}"
    )
    return ReferralService(fetcher, engine, generator, templates, credentials, config=config)
