"""
LLM Factory Module.

Provides a pooled text-completion capability for the referral generator.
ChatOpenAI instances are created once per (credential, model) pair and
reused, so per-user credentials do not pay client construction on every
request.

Usage:
    from jobref.common.llm_factory import CompletionClientPool

    pool = CompletionClientPool()
    text = await pool.complete(
        prompt,
        models=["gpt-4o-mini", "gpt-4o"],
        api_key=credential,
    )
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from jobref.common.config import Config
from jobref.common.error_handling import GenerationError
from jobref.common.fingerprint import credential_digest

logger = logging.getLogger(__name__)

# Substrings identifying a "model not found" class of failure when the
# provider does not raise openai.NotFoundError (OpenAI-compatible proxies)
_MODEL_NOT_FOUND_MARKERS = (
    "model_not_found",
    "does not exist",
    "is not found",
    "not found for api version",
    "unknown model",
)
_INVALID_KEY_MARKERS = ("api key not valid", "invalid_api_key", "incorrect api key", "invalid api key")
_QUOTA_MARKERS = ("quota", "insufficient_quota", "rate limit")


def classify_completion_error(exc: BaseException) -> str:
    """
    Classify a completion failure.

    Returns:
        "model_not_found", "invalid_credential", "quota" or "other"
    """
    if isinstance(exc, openai.NotFoundError):
        return "model_not_found"
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return "invalid_credential"
    if isinstance(exc, openai.RateLimitError):
        return "quota"

    message = str(exc).lower()
    if any(marker in message for marker in _MODEL_NOT_FOUND_MARKERS):
        return "model_not_found"
    if any(marker in message for marker in _INVALID_KEY_MARKERS):
        return "invalid_credential"
    if any(marker in message for marker in _QUOTA_MARKERS):
        return "quota"
    return "other"


class CompletionClientPool:
    """
    Pool of ChatOpenAI clients keyed by credential digest and model.

    Constructed once at process start and passed to the generator; tests
    build their own instance.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **llm_kwargs: Any,
    ):
        self.base_url = base_url if base_url is not None else Config.get_llm_base_url()
        self.temperature = temperature if temperature is not None else Config.REFERRAL_TEMPERATURE
        self.max_tokens = max_tokens if max_tokens is not None else Config.REFERRAL_MAX_TOKENS
        self._llm_kwargs = llm_kwargs
        self._clients: Dict[Tuple[str, str], ChatOpenAI] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._clients)

    def get_client(self, api_key: str, model: str) -> ChatOpenAI:
        """
        Get or create the client for a credential/model pair.

        Raises:
            GenerationError: if api_key is empty
        """
        if not api_key:
            raise GenerationError(
                "No API key available. Please add an API key in your account settings.",
                reason="missing_credential",
            )

        key = (credential_digest(api_key), model)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._create_client(api_key, model)
                self._clients[key] = client
                logger.debug(f"Created completion client: model={model}, pool_size={len(self._clients)}")
            return client

    def _create_client(self, api_key: str, model: str) -> ChatOpenAI:
        return ChatOpenAI(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=api_key,
            base_url=self.base_url,
            **self._llm_kwargs,
        )

    async def complete(
        self,
        prompt: str,
        models: Optional[Sequence[str]] = None,
        api_key: Optional[str] = None,
    ) -> str:
        """
        Complete a prompt, walking the model preference list.

        A "model not found" failure moves on to the next model; credential
        and quota failures are raised immediately.

        Args:
            prompt: Prompt text
            models: Model identifiers in preference order (defaults to Config.REFERRAL_MODELS)
            api_key: Credential to use

        Returns:
            Completion text (stripped)

        Raises:
            GenerationError: missing/invalid credential, quota, or all models exhausted
        """
        candidates: List[str] = list(models or Config.REFERRAL_MODELS)
        if not candidates:
            raise GenerationError("No completion models configured", reason="models_exhausted")

        tried: List[str] = []
        for model in candidates:
            client = self.get_client(api_key or "", model)
            try:
                response = await client.ainvoke([HumanMessage(content=prompt)])
            except Exception as e:
                kind = classify_completion_error(e)
                logger.error(f"Error with model {model}: {e}")
                if kind == "model_not_found":
                    tried.append(model)
                    continue
                if kind == "invalid_credential":
                    raise GenerationError(
                        "The API key is not valid. Please check your API key settings and try again.",
                        reason="invalid_credential",
                    ) from e
                if kind == "quota":
                    raise GenerationError(
                        "API quota exceeded. Please try again later or update your API key in settings.",
                        reason="quota",
                    ) from e
                raise GenerationError(f"Failed to generate referral message: {e}") from e

            logger.info(f"Completion succeeded using {model}")
            return _content_text(response.content).strip()

        raise GenerationError(
            f"No available model among: {', '.join(tried)}",
            reason="models_exhausted",
        )


def _content_text(content: Any) -> str:
    """AIMessage.content is either a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
