"""
Error taxonomy and handling helpers for the referral service.

Failures are grouped by the stage that produced them so the background
runner can record them verbatim and the API layer can map them onto
HTTP status codes:

- FetchError: navigation/network failure, non-2xx, detected error page
- ExtractionError: fused posting does not clear the minimum-length invariants
- GenerationError: missing/invalid credential, quota, all models exhausted
- ValidationError: malformed input at the API boundary
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

T = TypeVar("T")


class ReferralError(Exception):
    """Base exception for all referral pipeline errors."""

    stage: str = "unknown"


class FetchError(ReferralError):
    """Raised when a job page cannot be fetched."""

    stage = "fetch"

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ExtractionError(ReferralError):
    """Raised when the fused posting has insufficient confidence in a required field."""

    stage = "extract"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class GenerationError(ReferralError):
    """Raised when the referral message cannot be generated."""

    stage = "generate"

    # Reasons: "missing_credential", "invalid_credential", "quota", "models_exhausted", "failed"
    def __init__(self, message: str, reason: str = "failed"):
        super().__init__(message)
        self.reason = reason


class ValidationError(ReferralError):
    """Raised for malformed input at the API boundary."""

    stage = "validate"


@contextmanager
def log_on_exception(
    logger: logging.Logger,
    operation: str,
    level: int = logging.WARNING,
    include_traceback: bool = False,
) -> Iterator[None]:
    """
    Log a failing block, then let the exception continue.

    Usage:
        with log_on_exception(log.logger, f"fetch {url}"):
            html = await fetcher.fetch(url)
    """
    try:
        yield
    except Exception as e:
        logger.log(level, f"[{operation}] {type(e).__name__}: {e}", exc_info=include_traceback)
        raise


def safe_execute(
    func: Callable[..., T],
    *args,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    fallback: Any = None,
    critical: bool = False,
    **kwargs,
) -> T:
    """
    Call func, turning any exception into a logged fallback value.

    Extraction strategies run through this so that one broken strategy
    leaves the other signals intact.

    Args:
        func: Callable to run with *args / **kwargs
        operation_name: Label for the log line
        logger: Defaults to this module's logger
        fallback: Returned on failure; a callable is called for a fresh value
        critical: Log at ERROR with traceback instead of WARNING

    Returns:
        func's result, or the fallback
    """
    log = logger or logging.getLogger(__name__)
    try:
        return func(*args, **kwargs)
    except Exception as e:
        log.log(
            logging.ERROR if critical else logging.WARNING,
            f"[{operation_name}] {type(e).__name__}: {e}",
            exc_info=critical,
        )
        return fallback() if callable(fallback) else fallback


def error_message(exc: BaseException) -> str:
    """Message text recorded for a failed background run."""
    text = str(exc).strip()
    return text or type(exc).__name__
