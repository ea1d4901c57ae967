"""Orchestration interfaces and dispatch steps shared by the strategies."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Protocol

from ai_gateway.credentials import Credential, CredentialPool
from ai_gateway.errors import (
    GatewayUnavailableError,
    NoHealthyCredentialError,
    UpstreamClassification,
    UpstreamError,
    UpstreamFailureError,
)
from ai_gateway.model_registry import Provider, ResolvedModel
from ai_gateway.providers.base import ChatProvider, ProviderResponse
from ai_gateway.schemas import ChatRequest

logger = logging.getLogger(__name__)

_FAILURE_MESSAGES = {
    UpstreamClassification.AUTH_REJECTED: "Upstream provider rejected the gateway credential",
    UpstreamClassification.UNAVAILABLE: "Upstream provider is unavailable",
    UpstreamClassification.UNKNOWN: "Upstream provider request failed",
}


class ChatOrchestrator(Protocol):
    async def run(self, resolved: ResolvedModel, request: ChatRequest) -> ProviderResponse:
        """Dispatch the request upstream, rotating credentials on rate limits."""
        ...


def select_provider(
    providers: Mapping[Provider, ChatProvider], resolved: ResolvedModel
) -> ChatProvider:
    provider = providers.get(resolved.provider)
    if provider is None:
        raise RuntimeError(f"Unsupported provider: {resolved.provider.value}")
    return provider


def acquire_credential(pool: CredentialPool, provider: Provider) -> Credential:
    try:
        return pool.acquire(provider)
    except NoHealthyCredentialError as exc:
        logger.warning("No healthy credential available", extra={"provider": provider.value})
        raise GatewayUnavailableError(
            f"All {provider.value} API keys are rate limited. Please try again later."
        ) from exc


async def invoke_with_timeout(
    provider: ChatProvider,
    resolved: ResolvedModel,
    request: ChatRequest,
    credential: Credential,
    timeout_seconds: float,
) -> ProviderResponse:
    try:
        return await asyncio.wait_for(
            provider.invoke(
                resolved, request.messages, request.generation_params(), credential
            ),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise UpstreamError(
            UpstreamClassification.UNAVAILABLE,
            f"Upstream call timed out after {timeout_seconds}s",
        ) from exc


def to_failure(error: UpstreamError, credential: Credential) -> UpstreamFailureError:
    """Translate a non-retryable upstream error into the caller-visible failure."""
    logger.warning(
        "Upstream call failed",
        extra={
            "key_id": credential.key_id,
            "classification": error.classification.value,
            "upstream_status": error.status_code,
            "upstream_message": error.message,
        },
    )
    if error.classification is UpstreamClassification.INVALID_REQUEST:
        message = f"Upstream provider rejected the request: {error.message}"
    else:
        message = _FAILURE_MESSAGES.get(error.classification, "Upstream provider request failed")
    return UpstreamFailureError(error.classification, message)


def rotation_exhausted(provider: Provider, max_attempts: int) -> GatewayUnavailableError:
    logger.warning(
        "Dispatch attempts exhausted",
        extra={"provider": provider.value, "max_attempts": max_attempts},
    )
    return GatewayUnavailableError(
        f"{provider.value} is rate limiting every attempt. Please try again later."
    )
