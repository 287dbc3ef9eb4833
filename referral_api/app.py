"""
FastAPI service for referral message generation.

Provides endpoints for submitting referral jobs, polling their results,
clearing cached results and checking job URLs. The referral service is
built once in the lifespan handler and stored on app.state.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobref import __version__
from jobref.common.error_handling import (
    ExtractionError,
    FetchError,
    GenerationError,
    ReferralError,
    ValidationError,
)
from jobref.common.logger import setup_logging
from jobref.services.referral_service import ReferralService, build_referral_service
from jobref.services.url_validation import UrlValidationService

from .config import get_settings, validate_config_on_startup
from .deps import get_referral_service
from .models import HealthResponse
from .routes import referral_router, url_router

logger = logging.getLogger(__name__)

# Pipeline error -> HTTP status
ERROR_STATUS = [
    (ValidationError, 400),
    (ExtractionError, 422),
    (FetchError, 502),
    (GenerationError, 503),
]


def status_for_error(exc: BaseException) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(
    service: Optional[ReferralService] = None,
    url_validator: Optional[UrlValidationService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built service (tests); built from configuration when None
        url_validator: Pre-built URL validator; defaults to one sharing the service's fetcher

    Returns:
        FastAPI app
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        validate_config_on_startup()
        referral_service = service or build_referral_service()
        app.state.referral_service = referral_service
        app.state.url_validator = url_validator or UrlValidationService(referral_service.fetcher)
        logger.info("Referral API started")
        try:
            yield
        finally:
            await referral_service.aclose()
            logger.info("Referral API stopped")

    app = FastAPI(title="Referral Service", version=__version__, lifespan=lifespan)

    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        # pydantic prefixes messages raised by field validators
        detail = detail.removeprefix("Value error, ")
        return JSONResponse(status_code=400, content={"success": False, "error": detail})

    @app.exception_handler(ReferralError)
    async def referral_error_handler(request: Request, exc: ReferralError) -> JSONResponse:
        status_code = status_for_error(exc)
        logger.error(f"{request.url.path} failed at {exc.stage}: {exc}")
        return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    app.include_router(referral_router)
    app.include_router(url_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(
        referral_service: ReferralService = Depends(get_referral_service),
    ) -> HealthResponse:
        """Health check endpoint for container orchestration."""
        return HealthResponse(
            status="healthy",
            active_jobs=referral_service.jobs.active_tasks,
            fetcher=type(referral_service.fetcher).__name__,
            timestamp=datetime.utcnow(),
        )

    return app


def main() -> None:
    """Console entry point: uvicorn referral_api.app:app."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


app = create_app()
