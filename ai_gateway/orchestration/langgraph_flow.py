"""LangGraph-based orchestration strategy for chat dispatch."""

import logging
from collections.abc import Mapping
from typing import Literal, NotRequired, TypedDict, cast

from langgraph.graph import END, START, StateGraph

from ai_gateway.constants import DISPATCH_MAX_ATTEMPTS, UPSTREAM_TIMEOUT_SECONDS
from ai_gateway.credentials import Credential, CredentialPool
from ai_gateway.errors import UpstreamClassification, UpstreamError
from ai_gateway.model_registry import Provider, ResolvedModel
from ai_gateway.providers.base import ChatProvider, ProviderResponse
from ai_gateway.schemas import ChatRequest

from .base import (
    ChatOrchestrator,
    acquire_credential,
    invoke_with_timeout,
    rotation_exhausted,
    select_provider,
    to_failure,
)

logger = logging.getLogger(__name__)


class DispatchState(TypedDict):
    resolved: ResolvedModel
    request: ChatRequest
    attempt: int
    # Only the key id travels through graph state so secrets never reach traces.
    key_id: NotRequired[str]
    response: NotRequired[ProviderResponse]


class LangGraphChatOrchestrator(ChatOrchestrator):
    def __init__(
        self,
        providers: Mapping[Provider, ChatProvider],
        pool: CredentialPool,
        max_attempts: int = DISPATCH_MAX_ATTEMPTS,
        invoke_timeout_seconds: float = UPSTREAM_TIMEOUT_SECONDS,
    ) -> None:
        self._providers = providers
        self._pool = pool
        self._max_attempts = max_attempts
        self._invoke_timeout_seconds = invoke_timeout_seconds
        self._credentials: dict[str, Credential] = {}

        graph = StateGraph(DispatchState)
        graph.add_node("acquire_credential", self._acquire_credential)
        graph.add_node("invoke_provider", self._invoke_provider)
        graph.add_edge(START, "acquire_credential")
        graph.add_edge("acquire_credential", "invoke_provider")
        graph.add_conditional_edges(
            "invoke_provider",
            self._next_step,
            {"acquire_credential": "acquire_credential", END: END},
        )
        self._graph = graph.compile()

    async def _acquire_credential(self, state: DispatchState) -> dict[str, str | int]:
        credential = acquire_credential(self._pool, state["resolved"].provider)
        self._credentials[credential.key_id] = credential
        return {"key_id": credential.key_id, "attempt": state["attempt"] + 1}

    async def _invoke_provider(self, state: DispatchState) -> dict[str, ProviderResponse | int]:
        resolved = state["resolved"]
        provider = select_provider(self._providers, resolved)
        credential = self._credentials[state["key_id"]]
        try:
            response = await invoke_with_timeout(
                provider, resolved, state["request"], credential, self._invoke_timeout_seconds
            )
        except UpstreamError as exc:
            if exc.classification is not UpstreamClassification.RATE_LIMITED:
                raise to_failure(exc, credential) from exc
            self._pool.report_rate_limited(credential)
            logger.info(
                "Rotating credential after upstream rate limit",
                extra={"key_id": credential.key_id, "attempt": state["attempt"]},
            )
            return {"attempt": state["attempt"]}

        self._pool.report_success(credential)
        return {"response": response}

    def _next_step(self, state: DispatchState) -> Literal["acquire_credential", "__end__"]:
        if "response" in state or state["attempt"] >= self._max_attempts:
            return END
        return "acquire_credential"

    async def run(self, resolved: ResolvedModel, request: ChatRequest) -> ProviderResponse:
        select_provider(self._providers, resolved)
        initial_state: DispatchState = {
            "resolved": resolved,
            "request": request,
            "attempt": 0,
        }
        result = cast(
            "DispatchState",
            await self._graph.ainvoke(
                initial_state,
                config={"recursion_limit": 2 * self._max_attempts + 5},
            ),
        )
        response = result.get("response")
        if response is None:
            raise rotation_exhausted(resolved.provider, self._max_attempts)
        return response
