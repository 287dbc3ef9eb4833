"""
Referral Routes

Two-phase protocol: POST /generate accepts the job (202) and returns at
once; the client polls POST /result until the job completes.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from jobref.cache.models import CompletedFailure, CompletedSuccess, Processing
from jobref.common.types import ActorScope
from jobref.services.referral_service import ReferralService

from ..auth import resolve_actor_scope, verify_token
from ..deps import get_referral_service
from ..models import ClearCacheResponse, JobUrlRequest, ResultResponse, SubmitResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/referral", tags=["referral"], dependencies=[Depends(verify_token)])


@router.post("/generate", status_code=202, response_model=SubmitResponse)
async def generate_referral(
    body: JobUrlRequest,
    scope: ActorScope = Depends(resolve_actor_scope),
    service: ReferralService = Depends(get_referral_service),
) -> SubmitResponse:
    """Accept a referral job; never waits for generation."""
    logger.info(f"Referral requested for {body.job_url} ({scope.scope_key()})")
    submitted = await service.submit_referral_job(body.job_url, scope)
    message = (
        "Referral message generation started."
        if submitted.started
        else "Referral message generation already in progress or completed."
    )
    return SubmitResponse(message=message, jobId=submitted.job_id)


@router.post("/result", response_model=ResultResponse)
async def referral_result(
    body: JobUrlRequest,
    scope: ActorScope = Depends(resolve_actor_scope),
    service: ReferralService = Depends(get_referral_service),
) -> JSONResponse:
    """
    Poll a referral job.

    Status codes: 202 processing, 200 success, 422 failed, 404 unknown
    (never submitted, expired, or stale; the client should resubmit).
    """
    entry = await service.poll_referral_job(body.job_url, scope)

    match entry:
        case Processing(job_id=job_id):
            status_code = 202
            payload = ResultResponse(
                status=entry.status.value,
                jobId=job_id,
                message="Referral message is still being generated. Please check again shortly.",
            )
        case CompletedSuccess():
            status_code = 200
            payload = ResultResponse(
                success=True,
                status=entry.status.value,
                jobId=entry.job_id,
                jobTitle=entry.title,
                company=entry.company,
                referralMessage=entry.referral_message,
            )
        case CompletedFailure():
            status_code = 422
            payload = ResultResponse(
                success=False,
                status=entry.status.value,
                jobId=entry.job_id,
                error=entry.error_message,
            )
        case _:
            status_code = 404
            payload = ResultResponse(
                success=False,
                status="not_found",
                message="No referral job found for this URL. Please submit it again.",
            )

    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


@router.post("/clear-cache", response_model=ClearCacheResponse)
async def clear_referral_cache(
    body: JobUrlRequest,
    scope: ActorScope = Depends(resolve_actor_scope),
    service: ReferralService = Depends(get_referral_service),
) -> ClearCacheResponse:
    cleared = await service.invalidate(body.job_url, scope)
    return ClearCacheResponse(
        cleared=cleared,
        message="Referral cache cleared." if cleared else "No cached referral for this URL.",
    )
