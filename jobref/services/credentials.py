"""
Credential resolution for the completion service.

Credential storage and encryption live outside this service; resolvers only
answer "which key does this actor generate with".
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from jobref.common.types import ActorKind, ActorScope

logger = logging.getLogger(__name__)


class CredentialResolver(ABC):
    """Abstract credential lookup."""

    @abstractmethod
    def resolve(self, scope: ActorScope) -> Optional[str]:
        """
        Credential for an actor.

        Returns:
            API key, or None when the actor has none and there is no default
        """
        pass


class StaticCredentialResolver(CredentialResolver):
    """
    Resolve from a fixed mapping.

    Order: the custom key carried by the scope, then the user's stored key,
    then the default key.
    """

    def __init__(self, default_key: Optional[str] = None, user_keys: Optional[Dict[str, str]] = None):
        self.default_key = default_key or None
        self.user_keys = dict(user_keys or {})

    def set_user_key(self, user_id: str, api_key: str) -> None:
        self.user_keys[user_id] = api_key

    def resolve(self, scope: ActorScope) -> Optional[str]:
        if scope.kind == ActorKind.CUSTOM_CREDENTIAL and scope.api_key:
            return scope.api_key

        if scope.user_id and scope.user_id in self.user_keys:
            logger.debug(f"Using stored API key of user {scope.user_id}")
            return self.user_keys[scope.user_id]

        return self.default_key
