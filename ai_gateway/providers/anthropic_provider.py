"""Anthropic Messages API provider implementation for chat requests."""

import json
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from langchain_core.runnables import Runnable

from ai_gateway.constants import ANTHROPIC_DEFAULT_MAX_TOKENS
from ai_gateway.credentials import Credential
from ai_gateway.errors import UpstreamClassification, UpstreamError
from ai_gateway.message_mappers import build_anthropic_messages
from ai_gateway.model_registry import ResolvedModel
from ai_gateway.schemas import GenerationParams, Message, Usage

from .base import ProviderResponse, classify_status, error_message

logger = logging.getLogger(__name__)


def _first_text_block(content: Any) -> str:
    if not isinstance(content, list):
        return ""
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            return block.get("text") or ""
    return ""


class AnthropicChatProvider:
    def __init__(
        self,
        get_messages_runnable: Callable[[str], Runnable[dict[str, Any], httpx.Response]],
        default_max_tokens: int = ANTHROPIC_DEFAULT_MAX_TOKENS,
    ) -> None:
        self._get_messages_runnable = get_messages_runnable
        self._default_max_tokens = default_max_tokens

    def build_request_body(
        self, resolved: ResolvedModel, messages: list[Message], params: GenerationParams
    ) -> dict[str, Any]:
        system_prompt, turns = build_anthropic_messages(messages)
        body: dict[str, Any] = {
            "model": resolved.upstream_model_id,
            "max_tokens": params.max_tokens or self._default_max_tokens,
            "messages": turns,
        }
        if system_prompt:
            body["system"] = system_prompt
        if params.temperature is not None:
            # Anthropic accepts 0..1 only.
            body["temperature"] = min(params.temperature, 1.0)
        return body

    async def invoke(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        params: GenerationParams,
        credential: Credential,
    ) -> ProviderResponse:
        body = self.build_request_body(resolved, messages, params)

        start = time.time()
        try:
            response = await self._get_messages_runnable(credential.secret).ainvoke(
                body,
                config={
                    "run_name": "gateway_chat_request",
                    "tags": ["ai-gateway", resolved.upstream_model_id],
                    "metadata": {"message_count": len(messages), "key_id": credential.key_id},
                },
            )
        except httpx.TransportError as exc:
            # Connection failures and client-side timeouts.
            raise UpstreamError(
                UpstreamClassification.UNAVAILABLE, f"Request error: {exc}"
            ) from exc
        duration_ms = int((time.time() - start) * 1000)

        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = response.text

        if response.status_code >= 400:
            raise UpstreamError(
                classify_status(response.status_code, payload),
                error_message(
                    payload, f"Anthropic request failed with status {response.status_code}"
                ),
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise UpstreamError(
                UpstreamClassification.UNKNOWN, "Anthropic returned a non-JSON response body"
            )

        content = _first_text_block(payload.get("content"))
        usage = payload.get("usage") or {}
        normalized_usage = Usage.from_counts(usage.get("input_tokens"), usage.get("output_tokens"))

        logger.info(
            "Chat response generated",
            extra={
                "anthropic_duration_ms": duration_ms,
                "model": payload.get("model"),
                "key_id": credential.key_id,
                "usage_prompt_tokens": normalized_usage.prompt_tokens,
                "usage_completion_tokens": normalized_usage.completion_tokens,
                "response_length": len(content),
                "response_id": payload.get("id"),
            },
        )
        return ProviderResponse(
            content=content,
            usage=normalized_usage,
            upstream_model=payload.get("model") or resolved.upstream_model_id,
            key_id=credential.key_id,
            duration_seconds=round(duration_ms / 1000, 2),
        )
