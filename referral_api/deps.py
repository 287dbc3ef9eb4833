"""
Request dependencies: components built in the app lifespan, read from app.state.
"""

from fastapi import HTTPException, Request

from jobref.services.referral_service import ReferralService
from jobref.services.url_validation import UrlValidationService


def get_referral_service(request: Request) -> ReferralService:
    service = getattr(request.app.state, "referral_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Referral service not initialized")
    return service


def get_url_validator(request: Request) -> UrlValidationService:
    validator = getattr(request.app.state, "url_validator", None)
    if validator is None:
        raise HTTPException(status_code=503, detail="URL validation not initialized")
    return validator
