"""
Job Cache Data Models

Defines the cache key and the three entry states of a referral job:

    ∅ → Processing → {CompletedSuccess | CompletedFailure} → (TTL) → ∅

Entries are immutable; a state transition replaces the entry under its key.
Timestamps are readings of the manager's clock (seconds), not wall time,
so they are kept out of to_dict().
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union
from urllib.parse import urlsplit

from jobref.common.config import Config
from jobref.common.error_handling import ValidationError
from jobref.common.types import ActorScope

UNKNOWN_JOB_ID = "unknown"

UNSUPPORTED_URL_MESSAGE = "Only HireJobs.in URLs are supported"

_JOB_PATH = re.compile(r"^/jobs/[A-Za-z0-9_-]+/?$")


class JobStatus(str, Enum):
    """Status values reported to pollers."""

    PROCESSING = "processing"  # Background run in flight
    COMPLETED = "completed"    # Terminal: success or failure


def job_id_from_url(job_url: str) -> str:
    """
    Derive the job id from a posting URL.

    The id is the trailing non-empty path segment, with query string and
    fragment ignored. Returns "unknown" when the path has no segments.
    """
    path = urlsplit(job_url or "").path
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else UNKNOWN_JOB_ID


def is_job_board_url(job_url: str, hosts: Optional[Sequence[str]] = None) -> bool:
    """
    Whether job_url is a posting page on the job board.

    Requires http(s), a host from the allow list (no port or credentials
    in the authority) and a /jobs/<id> path. Query and fragment are ignored.
    """
    allowed = {host.lower() for host in (hosts if hosts is not None else Config.JOB_BOARD_HOSTS)}
    parts = urlsplit((job_url or "").strip())
    return (
        parts.scheme in ("http", "https")
        and parts.netloc.lower() in allowed
        and bool(_JOB_PATH.match(parts.path))
    )


def require_job_board_url(job_url: str) -> str:
    """
    Return job_url if it is a job board posting URL.

    Raises:
        ValidationError: for any other URL
    """
    if not is_job_board_url(job_url):
        raise ValidationError(UNSUPPORTED_URL_MESSAGE)
    return job_url


@dataclass(frozen=True)
class JobCacheKey:
    """One cache slot per (job, requesting actor)."""

    job_id: str
    scope_key: str

    @classmethod
    def for_request(cls, job_url: str, scope: ActorScope) -> "JobCacheKey":
        return cls(job_id=job_id_from_url(job_url), scope_key=scope.scope_key())

    def __str__(self) -> str:
        return f"{self.scope_key}:job:{self.job_id}"


@dataclass(frozen=True)
class Processing:
    """A background run was accepted and has not finished yet."""

    job_id: str
    started_at: float

    status = JobStatus.PROCESSING
    success = None

    def is_stale(self, now: float, stale_after: float) -> bool:
        return now - self.started_at > stale_after

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "success": self.success,
        }


@dataclass(frozen=True)
class CompletedSuccess:
    """The referral message was generated."""

    job_id: str
    title: str
    company: str
    referral_message: str
    completed_at: float

    status = JobStatus.COMPLETED
    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "success": self.success,
            "jobTitle": self.title,
            "company": self.company,
            "referralMessage": self.referral_message,
        }


@dataclass(frozen=True)
class CompletedFailure:
    """The run failed; error_message is the stage's error text, verbatim."""

    job_id: str
    error_message: str
    completed_at: float

    status = JobStatus.COMPLETED
    success = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "success": self.success,
            "error": self.error_message,
        }


JobCacheEntry = Union[Processing, CompletedSuccess, CompletedFailure]


@dataclass(frozen=True)
class SubmitResult:
    """
    Outcome of a submit.

    accepted is always True; started tells whether this call spawned a new
    background run or joined an existing entry.
    """

    job_id: str
    accepted: bool = True
    started: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"jobId": self.job_id, "accepted": self.accepted, "started": self.started}
