"""
Pydantic models for the referral API.

Field names on the wire are camelCase, matching the existing browser
extension and web client.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobref.cache.models import UNSUPPORTED_URL_MESSAGE, is_job_board_url


class JobUrlRequest(BaseModel):
    """Request body carrying a job posting URL."""

    model_config = ConfigDict(populate_by_name=True)

    job_url: str = Field(..., alias="jobUrl", description="Job board posting URL (/jobs/<id>).")

    @field_validator("job_url")
    @classmethod
    def validate_job_url(cls, v: str) -> str:
        v = v.strip()
        if not is_job_board_url(v):
            raise ValueError(UNSUPPORTED_URL_MESSAGE)
        return v


class SubmitResponse(BaseModel):
    """Response after accepting a referral job."""

    success: bool = True
    status: str = "processing"
    message: str
    jobId: str


class ResultResponse(BaseModel):
    """Poll payload; which fields are set depends on the job state."""

    success: Optional[bool] = None
    status: str
    message: Optional[str] = None
    jobId: Optional[str] = None
    jobTitle: Optional[str] = None
    company: Optional[str] = None
    referralMessage: Optional[str] = None
    error: Optional[str] = None


class ClearCacheResponse(BaseModel):
    success: bool = True
    cleared: bool
    message: str


class UrlValidationResponse(BaseModel):
    success: bool = True
    valid: bool
    message: str
    cached: bool = False
    cachedAt: Optional[float] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    active_jobs: int
    fetcher: str
    timestamp: datetime
