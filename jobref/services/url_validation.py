"""
Job URL accessibility check.

A cheap pre-flight before submitting a referral job: fetch the page once and
remember whether it was reachable. Results are cached for 30 minutes.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jobref.cache.models import require_job_board_url
from jobref.cache.store import Clock, TTLStore
from jobref.common.config import Config
from jobref.common.error_handling import FetchError
from jobref.services.page_fetcher import PageFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UrlValidationResult:
    url: str
    valid: bool
    cached: bool = False
    checked_at: Optional[float] = None  # epoch seconds
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        return "URL is valid and accessible" if self.valid else "URL is not accessible or valid"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "valid": self.valid,
            "message": self.message,
            "cached": self.cached,
            "cachedAt": self.checked_at if self.cached else None,
        }


class UrlValidationService:
    """Caches page reachability per URL."""

    def __init__(self, fetcher: PageFetcher, ttl: Optional[float] = None, clock: Optional[Clock] = None):
        self.fetcher = fetcher
        ttl = ttl if ttl is not None else Config.URL_VALIDATION_TTL_SECONDS
        self._results: TTLStore[str, UrlValidationResult] = TTLStore(ttl, clock=clock)

    async def validate(self, url: str) -> UrlValidationResult:
        """
        Check whether a job page is reachable.

        Fetch failures produce valid=False; they are answers, not errors.

        Raises:
            ValidationError: if url is not a job board posting; such URLs
                are never fetched
        """
        require_job_board_url(url)
        cached = self._results.get(url)
        if cached is not None:
            logger.info(f"Using cached URL validation result for {url}: {cached.valid}")
            return UrlValidationResult(
                url=url,
                valid=cached.valid,
                cached=True,
                checked_at=cached.checked_at,
                reason=cached.reason,
            )

        logger.info(f"Validating job URL: {url}")
        try:
            await self.fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"URL validation failed for {url}: {e}")
            result = UrlValidationResult(url=url, valid=False, checked_at=time.time(), reason=str(e))
        else:
            result = UrlValidationResult(url=url, valid=True, checked_at=time.time())

        self._results.set(url, result)
        return result
