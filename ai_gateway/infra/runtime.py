"""Runtime infrastructure helpers for credentials, tracing, and provider runnables."""

import logging
import os
from functools import lru_cache
from typing import Any

import boto3
import httpx
from langchain_core.runnables import Runnable, RunnableLambda
from langsmith import traceable
from langsmith.run_trees import get_cached_client
from openai import AsyncOpenAI

from ai_gateway.config import Settings, get_settings, split_keys
from ai_gateway.constants import LANGSMITH_PROJECT
from ai_gateway.model_registry import Provider

logger = logging.getLogger(__name__)


def _get_secure_parameter(ssm_client: Any, parameter_name: str) -> str:
    result = ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
    value = result["Parameter"].get("Value")
    if not value:
        raise RuntimeError(f"SSM parameter {parameter_name} has no value")
    return value


def _get_optional_secure_parameter(ssm_client: Any, parameter_name: str) -> str | None:
    try:
        return _get_secure_parameter(ssm_client, parameter_name)
    except Exception:
        logger.warning(
            "Optional SSM parameter is unavailable; disabling dependent feature",
            extra={"parameter_name": parameter_name},
            exc_info=True,
        )
        return None


@lru_cache(maxsize=1)
def _get_ssm_client() -> Any:
    return boto3.client("ssm", region_name=get_settings().AWS_REGION)


def load_provider_secrets(settings: Settings) -> dict[Provider, list[str]]:
    """Collect API keys per provider, falling back to SSM when the env list is empty."""
    sources = {
        Provider.PRIMARY: (settings.openai_keys(), settings.OPENAI_API_KEYS_PARAMETER),
        Provider.SECONDARY: (settings.anthropic_keys(), settings.ANTHROPIC_API_KEYS_PARAMETER),
    }
    secrets: dict[Provider, list[str]] = {}
    for provider, (keys, parameter_name) in sources.items():
        if not keys and parameter_name:
            keys = split_keys(_get_secure_parameter(_get_ssm_client(), parameter_name))
        if not keys:
            logger.warning(
                "No API keys configured for provider", extra={"provider": provider.value}
            )
        secrets[provider] = keys
    return secrets


def _configure_langsmith(langsmith_api_key: str | None) -> None:
    if not langsmith_api_key:
        os.environ.pop("LANGSMITH_TRACING", None)
        os.environ.pop("LANGSMITH_API_KEY", None)
        logger.info("LangSmith tracing disabled because API key is unavailable")
        return

    os.environ["LANGSMITH_TRACING"] = "true"
    os.environ["LANGSMITH_API_KEY"] = langsmith_api_key
    os.environ.setdefault("LANGSMITH_PROJECT", LANGSMITH_PROJECT)


@lru_cache(maxsize=1)
def ensure_langsmith_configured() -> None:
    """Configure LangSmith environment variables (called once via lru_cache)."""
    langsmith_api_key = os.environ.get("LANGSMITH_API_KEY")
    parameter_name = get_settings().LANGSMITH_API_KEY_PARAMETER
    if not langsmith_api_key and parameter_name:
        langsmith_api_key = _get_optional_secure_parameter(_get_ssm_client(), parameter_name)
    _configure_langsmith(langsmith_api_key)


def flush_langsmith_traces() -> None:
    if os.environ.get("LANGSMITH_TRACING", "").lower() != "true":
        return
    if not os.environ.get("LANGSMITH_API_KEY"):
        return
    try:
        get_cached_client().flush()
    except Exception:
        logger.warning("Failed to flush LangSmith traces", exc_info=True)


@lru_cache(maxsize=32)
def get_openai_client(api_key: str) -> AsyncOpenAI:
    """Create one OpenAI client per key; SDK retries are off so rotation stays in the gateway."""
    return AsyncOpenAI(
        api_key=api_key,
        max_retries=0,
        timeout=get_settings().UPSTREAM_TIMEOUT_SECONDS,
    )


def build_openai_chat_runnable(client: AsyncOpenAI) -> Runnable[dict[str, Any], Any]:
    @traceable(run_type="llm", name="openai.chat.completions.create")
    async def _create_chat_completion(request_params: dict[str, Any]) -> Any:
        return await client.chat.completions.create(**request_params)

    return RunnableLambda(_create_chat_completion).with_config(
        {"run_name": "gateway_openai_chat_completions"}
    )


@lru_cache(maxsize=32)
def get_openai_chat_runnable(api_key: str) -> Runnable[dict[str, Any], Any]:
    return build_openai_chat_runnable(get_openai_client(api_key))


def build_anthropic_messages_runnable(
    api_key: str,
    base_url: str,
    anthropic_version: str,
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Runnable[dict[str, Any], httpx.Response]:
    headers = {
        "x-api-key": api_key,
        "anthropic-version": anthropic_version,
        "content-type": "application/json",
    }

    @traceable(run_type="llm", name="anthropic.messages.create")
    async def _create_message(body: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        ) as client:
            return await client.post("/v1/messages", json=body, headers=headers)

    return RunnableLambda(_create_message).with_config(
        {"run_name": "gateway_anthropic_messages"}
    )


@lru_cache(maxsize=32)
def get_anthropic_messages_runnable(api_key: str) -> Runnable[dict[str, Any], httpx.Response]:
    settings = get_settings()
    return build_anthropic_messages_runnable(
        api_key,
        base_url=settings.ANTHROPIC_BASE_URL,
        anthropic_version=settings.ANTHROPIC_VERSION,
        timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
    )
