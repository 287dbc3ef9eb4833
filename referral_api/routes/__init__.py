"""
Referral API route modules.
"""

from .referral import router as referral_router
from .url import router as url_router

__all__ = ["referral_router", "url_router"]
