"""Direct provider dispatch orchestration."""

import logging
from collections.abc import Mapping

from ai_gateway.constants import DISPATCH_MAX_ATTEMPTS, UPSTREAM_TIMEOUT_SECONDS
from ai_gateway.credentials import CredentialPool
from ai_gateway.errors import UpstreamClassification, UpstreamError
from ai_gateway.model_registry import Provider, ResolvedModel
from ai_gateway.orchestration.base import (
    ChatOrchestrator,
    acquire_credential,
    invoke_with_timeout,
    rotation_exhausted,
    select_provider,
    to_failure,
)
from ai_gateway.providers.base import ChatProvider, ProviderResponse
from ai_gateway.schemas import ChatRequest

logger = logging.getLogger(__name__)


class DirectChatOrchestrator(ChatOrchestrator):
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

    async def run(self, resolved: ResolvedModel, request: ChatRequest) -> ProviderResponse:
        provider = select_provider(self._providers, resolved)

        for attempt in range(1, self._max_attempts + 1):
            credential = acquire_credential(self._pool, resolved.provider)
            try:
                response = await invoke_with_timeout(
                    provider, resolved, request, credential, self._invoke_timeout_seconds
                )
            except UpstreamError as exc:
                if exc.classification is not UpstreamClassification.RATE_LIMITED:
                    raise to_failure(exc, credential) from exc
                self._pool.report_rate_limited(credential)
                logger.info(
                    "Rotating credential after upstream rate limit",
                    extra={"key_id": credential.key_id, "attempt": attempt},
                )
                continue

            self._pool.report_success(credential)
            return response

        raise rotation_exhausted(resolved.provider, self._max_attempts)
