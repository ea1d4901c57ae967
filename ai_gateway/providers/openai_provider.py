"""OpenAI provider implementation for chat requests."""

import logging
import time
from collections.abc import Callable
from typing import Any

import openai
from langchain_core.runnables import Runnable

from ai_gateway.credentials import Credential
from ai_gateway.errors import UpstreamClassification, UpstreamError
from ai_gateway.message_mappers import build_openai_messages
from ai_gateway.model_registry import ResolvedModel, model_capability
from ai_gateway.schemas import GenerationParams, Message, Usage

from .base import ProviderResponse, classify_status, error_message

logger = logging.getLogger(__name__)


def _classify_openai_error(exc: openai.OpenAIError) -> UpstreamError:
    if isinstance(exc, openai.APIConnectionError):
        # Covers APITimeoutError as well.
        return UpstreamError(UpstreamClassification.UNAVAILABLE, str(exc))
    if isinstance(exc, openai.APIStatusError):
        classification = classify_status(exc.status_code, exc.body)
        return UpstreamError(
            classification,
            error_message(exc.body, exc.message),
            status_code=exc.status_code,
        )
    return UpstreamError(UpstreamClassification.UNKNOWN, str(exc))


class OpenAIChatProvider:
    def __init__(
        self,
        get_chat_runnable: Callable[[str], Runnable[dict[str, Any], Any]],
    ) -> None:
        self._get_chat_runnable = get_chat_runnable

    def build_request_params(
        self, resolved: ResolvedModel, messages: list[Message], params: GenerationParams
    ) -> dict[str, Any]:
        capability = model_capability(resolved.upstream_model_id)
        request_params: dict[str, Any] = {
            "model": resolved.upstream_model_id,
            "messages": build_openai_messages(messages),
        }
        if params.max_tokens is not None:
            request_params["max_completion_tokens"] = params.max_tokens
        if capability.supports_temperature and params.temperature is not None:
            request_params["temperature"] = params.temperature
        if capability.supports_reasoning_effort and params.reasoning_effort is not None:
            request_params["reasoning_effort"] = params.reasoning_effort
        if capability.supports_verbosity and params.text_verbosity is not None:
            request_params["verbosity"] = params.text_verbosity
        return request_params

    async def invoke(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        params: GenerationParams,
        credential: Credential,
    ) -> ProviderResponse:
        request_params = self.build_request_params(resolved, messages, params)

        start = time.time()
        try:
            response = await self._get_chat_runnable(credential.secret).ainvoke(
                request_params,
                config={
                    "run_name": "gateway_chat_request",
                    "tags": ["ai-gateway", resolved.upstream_model_id],
                    "metadata": {"message_count": len(messages), "key_id": credential.key_id},
                },
            )
        except openai.OpenAIError as exc:
            raise _classify_openai_error(exc) from exc
        duration_ms = int((time.time() - start) * 1000)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = response.usage
        normalized_usage = Usage.from_counts(
            usage.prompt_tokens if usage else None,
            usage.completion_tokens if usage else None,
            usage.total_tokens if usage else None,
        )

        logger.info(
            "Chat response generated",
            extra={
                "openai_duration_ms": duration_ms,
                "model": response.model,
                "key_id": credential.key_id,
                "usage_prompt_tokens": normalized_usage.prompt_tokens,
                "usage_completion_tokens": normalized_usage.completion_tokens,
                "response_length": len(content),
                "response_id": response.id,
            },
        )
        return ProviderResponse(
            content=content,
            usage=normalized_usage,
            upstream_model=response.model or resolved.upstream_model_id,
            key_id=credential.key_id,
            duration_seconds=round(duration_ms / 1000, 2),
        )
