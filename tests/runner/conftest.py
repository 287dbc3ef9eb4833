"""
Pytest fixtures for referral API tests.
"""

import os
from unittest.mock import AsyncMock, MagicMock

# IMPORTANT: Set environment variables BEFORE any imports from referral_api
# so Config and ApiSettings are configured correctly when first loaded.
os.environ["ENVIRONMENT"] = "development"
os.environ["MONGODB_URI"] = ""
os.environ["OPENAI_API_KEY"] = "sk-test-mock-key"
os.environ["FETCHER_BACKEND"] = "direct"
os.environ["DEBUG_SCREENSHOT_DIR"] = ""
os.environ["CORS_ORIGINS"] = ""
os.environ["REFERRAL_API_SECRET"] = ""  # auth off unless a test opts in

import pytest
from fastapi.testclient import TestClient

from jobref.cache.models import SubmitResult


@pytest.fixture
def fake_service():
    """
    ReferralService double.

    Routes only talk to the service through these coroutines, so status
    mapping can be tested without running the pipeline.
    """
    service = MagicMock()
    service.submit_referral_job = AsyncMock(
        return_value=SubmitResult(job_id="backend-engineer-123", accepted=True, started=True)
    )
    service.poll_referral_job = AsyncMock(return_value=None)
    service.invalidate = AsyncMock(return_value=True)
    service.aclose = AsyncMock()
    service.jobs.active_tasks = 0
    return service


@pytest.fixture
def fake_validator():
    validator = MagicMock()
    validator.validate = AsyncMock()
    return validator


@pytest.fixture
def client(fake_service, fake_validator):
    """FastAPI test client; the context manager runs the lifespan handler."""
    from referral_api.app import create_app

    app = create_app(service=fake_service, url_validator=fake_validator)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def job_url():
    return "https://hirejobs.in/jobs/backend-engineer-123"
