"""
Configuration Management Module

Reads gateway settings from environment variables or a ``.env`` file once at
start-up. Provider keys may also come from AWS SSM Parameter Store (see
``ai_gateway.infra.runtime``).
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    AI_RATE_LIMIT,
    ANTHROPIC_BASE_URL,
    ANTHROPIC_DEFAULT_MAX_TOKENS,
    ANTHROPIC_VERSION,
    AWS_REGION,
    CREDENTIAL_COOL_DOWN_SECONDS,
    DEFAULT_MODEL_ALIASES,
    DISPATCH_MAX_ATTEMPTS,
    GENERAL_RATE_LIMIT,
    LANGSMITH_API_KEY_PARAMETER_NAME,
    SECONDARY_MODEL_PREFIX,
    UPSTREAM_TIMEOUT_SECONDS,
    OrchestrationStrategy,
)
from .rate_limit import RateLimitPolicy, parse_rate_limit


def split_keys(raw: str) -> list[str]:
    return [key.strip() for key in raw.split(",") if key.strip() and key.strip() != "undefined"]


class Settings(BaseSettings):
    """
    Gateway configuration.

    Every field can be overridden by the environment variable of the same name.
    """

    # Provider credentials: comma-separated keys, or an SSM parameter holding them
    OPENAI_API_KEYS: str = ""
    ANTHROPIC_API_KEYS: str = ""
    OPENAI_API_KEYS_PARAMETER: str | None = None
    ANTHROPIC_API_KEYS_PARAMETER: str | None = None
    AWS_REGION: str = AWS_REGION
    LANGSMITH_API_KEY_PARAMETER: str | None = LANGSMITH_API_KEY_PARAMETER_NAME

    # Upstream
    ANTHROPIC_BASE_URL: str = ANTHROPIC_BASE_URL
    ANTHROPIC_VERSION: str = ANTHROPIC_VERSION
    ANTHROPIC_DEFAULT_MAX_TOKENS: int = Field(default=ANTHROPIC_DEFAULT_MAX_TOKENS, ge=1)
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=UPSTREAM_TIMEOUT_SECONDS, gt=0)

    # Dispatch and key rotation
    DISPATCH_MAX_ATTEMPTS: int = Field(default=DISPATCH_MAX_ATTEMPTS, ge=1)
    CREDENTIAL_COOL_DOWN_SECONDS: float = Field(default=CREDENTIAL_COOL_DOWN_SECONDS, ge=0)
    ORCHESTRATION_STRATEGY: OrchestrationStrategy = "direct"

    # Caller rate limits
    # Only the per-address policy can be switched off; AI_RATE_LIMIT always applies
    GENERAL_RATE_LIMIT_ENABLED: bool = True
    AI_RATE_LIMIT: str = AI_RATE_LIMIT
    GENERAL_RATE_LIMIT: str = GENERAL_RATE_LIMIT

    # Model routing (MODEL_ALIASES is JSON: {"logical-name": "upstream-model"})
    MODEL_ALIASES: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MODEL_ALIASES))
    SECONDARY_MODEL_PREFIX: str = SECONDARY_MODEL_PREFIX

    # Caller authentication (AUTH_TOKENS is JSON: {"<sha256 of token>": "user-id"})
    AUTH_TOKENS: dict[str, str] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("AI_RATE_LIMIT", "GENERAL_RATE_LIMIT")
    @classmethod
    def validate_rate_limit(cls, value: str) -> str:
        parse_rate_limit(value)
        return value

    def ai_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy.from_string("ai", self.AI_RATE_LIMIT)

    def general_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy.from_string("general", self.GENERAL_RATE_LIMIT)

    def openai_keys(self) -> list[str]:
        return split_keys(self.OPENAI_API_KEYS)

    def anthropic_keys(self) -> list[str]:
        return split_keys(self.ANTHROPIC_API_KEYS)


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
