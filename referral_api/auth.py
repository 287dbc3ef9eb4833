"""
Authentication Module

Callers authenticate with a shared secret sent as a Bearer token; the
gateway in front of the service holds the secret. Once through, the
gateway forwards the authenticated user id in X-User-Id, and a caller may
supply their own completion key in X-Api-Key.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jobref.common.types import ActorScope

from .config import ApiSettings, get_settings

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is reported as 401, like a bad token
security = HTTPBearer(auto_error=False)


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: ApiSettings = Depends(get_settings),
) -> Optional[HTTPAuthorizationCredentials]:
    """
    Verify the shared secret token.

    Raises:
        HTTPException: 401 if the token is missing or wrong, 500 if auth is
            required but no secret is configured
    """
    if not settings.auth_required:
        return credentials

    expected_secret = settings.referral_api_secret
    if not expected_secret:
        logger.error("REFERRAL_API_SECRET is required but not configured")
        raise HTTPException(status_code=500, detail="Server authentication not configured")

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), expected_secret.encode()
    ):
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return credentials


async def resolve_actor_scope(
    x_user_id: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None),
) -> ActorScope:
    """
    Build the ActorScope for a request.

    Returns:
        custom_credential scope when X-Api-Key is present, user scope when
        only X-User-Id is present, anonymous otherwise
    """
    user_id = (x_user_id or "").strip() or None
    api_key = (x_api_key or "").strip() or None

    if api_key:
        return ActorScope.with_credential(api_key, user_id=user_id)
    if user_id:
        return ActorScope.for_user(user_id)
    return ActorScope.anonymous()
