"""
URL Routes

Quick accessibility check before starting a referral job.
"""

import logging

from fastapi import APIRouter, Depends

from jobref.services.url_validation import UrlValidationService

from ..auth import verify_token
from ..deps import get_url_validator
from ..models import JobUrlRequest, UrlValidationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/url", tags=["url"], dependencies=[Depends(verify_token)])


@router.post("/validate", response_model=UrlValidationResponse)
async def validate_url(
    body: JobUrlRequest,
    validator: UrlValidationService = Depends(get_url_validator),
) -> UrlValidationResponse:
    result = await validator.validate(body.job_url)
    return UrlValidationResponse(**result.to_dict())
