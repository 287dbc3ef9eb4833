"""
Job cache: idempotent submit/poll over background referral runs.
"""

from jobref.cache.manager import ReferralJobManager
from jobref.cache.models import (
    CompletedFailure,
    CompletedSuccess,
    JobCacheEntry,
    JobCacheKey,
    JobStatus,
    Processing,
    SubmitResult,
    job_id_from_url,
)
from jobref.cache.store import TTLStore

__all__ = [
    "ReferralJobManager",
    "TTLStore",
    "JobCacheEntry",
    "JobCacheKey",
    "JobStatus",
    "Processing",
    "CompletedSuccess",
    "CompletedFailure",
    "SubmitResult",
    "job_id_from_url",
]
