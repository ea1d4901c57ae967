"""Shared constants and literal types for the AI gateway."""

from typing import Literal

AWS_REGION = "ap-northeast-1"
LANGSMITH_PROJECT = "ai-message-gateway"
LANGSMITH_API_KEY_PARAMETER_NAME = "/ai-gateway/langsmith-api-key"

DEFAULT_MODEL = "gpt-4o"
SECONDARY_MODEL_PREFIX = "claude"
DEFAULT_MODEL_ALIASES: dict[str, str] = {
    "gpt-5": "gpt-4o",
    "gpt-5-mini": "gpt-4o-mini",
    "gpt-5-nano": "gpt-4o-mini",
    "gpt-4.1": "gpt-4-turbo",
    "gpt-4.1-mini": "gpt-4o-mini",
}

AI_RATE_LIMIT = "10/minute"
GENERAL_RATE_LIMIT = "500/15minutes"
CREDENTIAL_COOL_DOWN_SECONDS = 60.0
DISPATCH_MAX_ATTEMPTS = 3
UPSTREAM_TIMEOUT_SECONDS = 30.0

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_DEFAULT_MAX_TOKENS = 2000
MAX_OUTPUT_TOKENS_LIMIT = 32768

DISCONNECT_POLL_INTERVAL_SECONDS = 0.5
AI_MESSAGE_EVENT = "ai:message"

Role = Literal["user", "assistant", "system"]
ReasoningEffort = Literal["minimal", "low", "medium", "high"]
TextVerbosity = Literal["low", "medium", "high"]
OrchestrationStrategy = Literal["direct", "langgraph"]
