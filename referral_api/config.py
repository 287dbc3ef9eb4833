"""
Referral API Configuration Module

HTTP-layer settings with Pydantic validation. Pipeline settings (models,
TTLs, fetcher backend) live in jobref.common.config.Config.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobref.common.config import Config

logger = logging.getLogger(__name__)


class ApiSettings(BaseSettings):
    """
    Referral API configuration with validation.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins"
    )
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="simple", description="Log format: simple or json")

    # === Security ===
    referral_api_secret: Optional[str] = Field(
        default=None,
        description="Shared Bearer secret for the API (min 16 chars)"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("referral_api_secret")
    @classmethod
    def validate_secret_strength(cls, v: Optional[str]) -> Optional[str]:
        """Reject short or guessable secrets; an empty value means unset."""
        if not v:
            return None
        weak_secrets = {"secret", "password", "changeme", "1234567890123456"}
        if len(v) < 16 or v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("API secret is too weak - use a random string of at least 16 characters")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("simple", "json"):
            raise ValueError("log_format must be 'simple' or 'json'")
        return v.lower()

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def auth_required(self) -> bool:
        # Production always authenticates; elsewhere only once a secret is set
        return self.is_production or self.referral_api_secret is not None

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning/error messages.
        """
        issues = []

        if self.is_production:
            if not self.referral_api_secret:
                issues.append("CRITICAL: REFERRAL_API_SECRET required in production")
            if not Config.get_llm_api_key():
                issues.append("WARNING: OPENAI_API_KEY not set; anonymous requests cannot generate")
            if not Config.MONGODB_URI:
                issues.append("WARNING: MONGODB_URI not set; templates are in-memory only")
            if not self.cors_origins:
                issues.append("WARNING: CORS_ORIGINS not configured")

        return issues


@lru_cache()
def get_settings() -> ApiSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    """
    return ApiSettings()


def validate_config_on_startup() -> None:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    try:
        settings = get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e

    Config.validate()

    for issue in settings.validate_production_config():
        if issue.startswith("CRITICAL"):
            raise ValueError(issue)
        logger.warning(issue)

    logger.info(f"Configuration loaded: environment={settings.environment}")
    for line in Config.summary().splitlines():
        logger.info(line)
