"""
Configuration loader for the referral service.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """
    Centralized configuration for the fetch -> extract -> generate pipeline.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== MongoDB (templates) =====
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "jobref")

    # ===== Text completion =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    # Optional OpenAI-compatible endpoint (OpenRouter, Gemini compat, local proxy)
    LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "")

    # Model preference list, tried in order; "model not found" moves to the next one
    REFERRAL_MODELS: List[str] = _split_csv(os.getenv("REFERRAL_MODELS", "gpt-4o-mini,gpt-4o"))
    REFERRAL_TEMPERATURE: float = float(os.getenv("REFERRAL_TEMPERATURE", "0.5"))
    REFERRAL_MAX_TOKENS: int = int(os.getenv("REFERRAL_MAX_TOKENS", "500"))

    # ===== Page fetching =====
    # "browser" (Playwright, handles JS-rendered pages) or "direct" (plain HTTP GET)
    FETCHER_BACKEND: str = os.getenv("FETCHER_BACKEND", "browser").lower()
    FETCH_MAX_CONCURRENCY: int = int(os.getenv("FETCH_MAX_CONCURRENCY", "1"))
    NAVIGATION_TIMEOUT_SECONDS: float = float(os.getenv("NAVIGATION_TIMEOUT_SECONDS", "30"))
    SETTLE_DELAY_SECONDS: float = float(os.getenv("SETTLE_DELAY_SECONDS", "1.0"))
    DEBUG_SCREENSHOT_DIR: str = os.getenv("DEBUG_SCREENSHOT_DIR", "")
    PLAYWRIGHT_HEADLESS: bool = os.getenv("PLAYWRIGHT_HEADLESS", "true").lower() == "true"

    # ===== Caching =====
    JOB_CACHE_TTL_SECONDS: int = int(os.getenv("JOB_CACHE_TTL_SECONDS", "3600"))
    JOB_FAILURE_TTL_SECONDS: int = int(os.getenv("JOB_FAILURE_TTL_SECONDS", "300"))
    STALE_PROCESSING_SECONDS: int = int(os.getenv("STALE_PROCESSING_SECONDS", "120"))
    URL_VALIDATION_TTL_SECONDS: int = int(os.getenv("URL_VALIDATION_TTL_SECONDS", "1800"))

    # ===== Site =====
    # Brand token scrubbed from titles, company names and generated messages
    SITE_BRAND: str = os.getenv("SITE_BRAND", "HireJobs")
    # Hosts whose /jobs/<id> pages may be fetched; anything else is rejected
    JOB_BOARD_HOSTS: List[str] = _split_csv(os.getenv("JOB_BOARD_HOSTS", "hirejobs.in,www.hirejobs.in"))

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ValueError if critical settings are missing or inconsistent.
        """
        if cls.FETCHER_BACKEND not in ("browser", "direct"):
            raise ValueError(
                f"FETCHER_BACKEND must be 'browser' or 'direct', got '{cls.FETCHER_BACKEND}'"
            )

        if not cls.REFERRAL_MODELS:
            raise ValueError("REFERRAL_MODELS must name at least one model.")

        if not cls.JOB_BOARD_HOSTS:
            raise ValueError("JOB_BOARD_HOSTS must name at least one host.")

        if cls.FETCH_MAX_CONCURRENCY < 1:
            raise ValueError("FETCH_MAX_CONCURRENCY must be >= 1")

        if cls.JOB_FAILURE_TTL_SECONDS > cls.JOB_CACHE_TTL_SECONDS:
            raise ValueError(
                "JOB_FAILURE_TTL_SECONDS must not exceed JOB_CACHE_TTL_SECONDS"
            )

        if cls.DEBUG_SCREENSHOT_DIR:
            Path(cls.DEBUG_SCREENSHOT_DIR).mkdir(parents=True, exist_ok=True)

    @classmethod
    def get_llm_api_key(cls) -> str:
        """Default credential for anonymous requests."""
        return cls.OPENAI_API_KEY

    @classmethod
    def get_llm_base_url(cls) -> Optional[str]:
        """LLM base URL (None to use OpenAI directly)."""
        return cls.LLM_BASE_URL or None

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return f"""
Configuration Summary:
  MongoDB: {'✓ Configured' if cls.MONGODB_URI else '✗ Missing (in-memory templates)'}
  LLM (default key): {'✓' if cls.get_llm_api_key() else '✗ Missing'}
  LLM endpoint: {cls.get_llm_base_url() or 'OpenAI'}
  Models: {', '.join(cls.REFERRAL_MODELS)}
  Fetcher: {cls.FETCHER_BACKEND} (max concurrency {cls.FETCH_MAX_CONCURRENCY})
  Job cache TTL: {cls.JOB_CACHE_TTL_SECONDS}s / failures {cls.JOB_FAILURE_TTL_SECONDS}s
  Stale processing after: {cls.STALE_PROCESSING_SECONDS}s
  Site brand: {cls.SITE_BRAND}
  Job board hosts: {', '.join(cls.JOB_BOARD_HOSTS)}
        """.strip()
