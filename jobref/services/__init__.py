"""
Referral pipeline services: page fetching, templates, credentials, message
generation and the service tying them together.
"""

from jobref.services.credentials import CredentialResolver, StaticCredentialResolver
from jobref.services.page_fetcher import (
    BrowserPageFetcher,
    DirectPageFetcher,
    PageFetcher,
    create_page_fetcher,
)
from jobref.services.referral_generator import ReferralMessageGenerator
from jobref.services.referral_service import ReferralService, build_referral_service
from jobref.services.templates import DEFAULT_TEMPLATE_CONTENT, TemplateResolver
from jobref.services.url_validation import UrlValidationResult, UrlValidationService

__all__ = [
    "PageFetcher",
    "BrowserPageFetcher",
    "DirectPageFetcher",
    "create_page_fetcher",
    "CredentialResolver",
    "StaticCredentialResolver",
    "TemplateResolver",
    "DEFAULT_TEMPLATE_CONTENT",
    "ReferralMessageGenerator",
    "ReferralService",
    "build_referral_service",
    "UrlValidationService",
    "UrlValidationResult",
]
