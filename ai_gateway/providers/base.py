"""Provider interfaces, shared response model and upstream failure classification."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ai_gateway.credentials import Credential
from ai_gateway.errors import UpstreamClassification
from ai_gateway.model_registry import ResolvedModel
from ai_gateway.schemas import GenerationParams, Message, Usage

_RATE_LIMIT_ERROR_TYPES = {"rate_limit_error", "rate_limit_exceeded"}


@dataclass(frozen=True)
class ProviderResponse:
    content: str
    usage: Usage
    upstream_model: str
    key_id: str
    duration_seconds: float


class ChatProvider(Protocol):
    async def invoke(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        params: GenerationParams,
        credential: Credential,
    ) -> ProviderResponse:
        """Call the upstream provider and return a normalized response.

        Raises ``UpstreamError`` for every failure, classified so the
        orchestrator can decide whether to rotate credentials.
        """
        ...


def is_rate_limit_signal(body: Any) -> bool:
    """Detect an explicit rate-limit marker in an upstream error body."""
    if not isinstance(body, Mapping):
        return False
    error = body.get("error", body)
    if not isinstance(error, Mapping):
        return isinstance(error, str) and "rate limit" in error.lower()
    if error.get("type") in _RATE_LIMIT_ERROR_TYPES or error.get("code") in _RATE_LIMIT_ERROR_TYPES:
        return True
    message = error.get("message")
    return isinstance(message, str) and "rate limit" in message.lower()


def classify_status(status_code: int, body: Any = None) -> UpstreamClassification:
    if status_code == 429 or is_rate_limit_signal(body):
        return UpstreamClassification.RATE_LIMITED
    if status_code in (401, 403):
        return UpstreamClassification.AUTH_REJECTED
    if status_code == 400:
        return UpstreamClassification.INVALID_REQUEST
    if 500 <= status_code <= 599:
        return UpstreamClassification.UNAVAILABLE
    return UpstreamClassification.UNKNOWN


def error_message(body: Any, default: str) -> str:
    if isinstance(body, Mapping):
        # The OpenAI SDK hands over the inner error object already unwrapped.
        error = body.get("error", body)
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return default
