"""Application service for gateway chat requests."""

import logging

from ai_gateway.auth import AuthenticationError, CallerIdentity, TokenVerifier, parse_bearer_token
from ai_gateway.constants import AI_MESSAGE_EVENT
from ai_gateway.errors import CallerRateLimitedError, UnauthorizedError
from ai_gateway.model_registry import ModelResolver
from ai_gateway.notifications import Notifier
from ai_gateway.orchestration.base import ChatOrchestrator
from ai_gateway.pricing import calculate_cost
from ai_gateway.rate_limit import RateLimiter, RateLimitPolicy, caller_key
from ai_gateway.schemas import ChatRequest, ChatResult

logger = logging.getLogger(__name__)


class ChatService:
    """Entry point for AI chat requests.

    ``admit`` runs authentication and the per-caller AI rate limit before the
    request body is parsed; ``handle_chat`` resolves the model and hands
    dispatch to the orchestrator. Callers only ever see a ``ChatResult`` or a
    ``GatewayError``.
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        rate_limiter: RateLimiter,
        ai_policy: RateLimitPolicy,
        resolver: ModelResolver,
        orchestrator: ChatOrchestrator,
        notifier: Notifier,
    ) -> None:
        self._verifier = verifier
        self._rate_limiter = rate_limiter
        self._ai_policy = ai_policy
        self._resolver = resolver
        self._orchestrator = orchestrator
        self._notifier = notifier

    def authenticate(self, authorization: str | None) -> CallerIdentity:
        try:
            return self._verifier.verify(parse_bearer_token(authorization))
        except AuthenticationError as exc:
            logger.info("Caller authentication failed", extra={"reason": str(exc)})
            raise UnauthorizedError() from exc

    def admit(self, authorization: str | None, client_host: str | None) -> CallerIdentity:
        """Authenticate the caller and charge one request against the AI policy."""
        identity = self.authenticate(authorization)

        key = caller_key(identity.user_id, client_host)
        decision = self._rate_limiter.check_and_increment(self._ai_policy, key)
        if not decision.allowed:
            logger.warning(
                "AI rate limit exceeded",
                extra={"rate_limit_key": key, "retry_after": decision.retry_after},
            )
            raise CallerRateLimitedError(decision.retry_after)
        return identity

    async def handle_chat(self, identity: CallerIdentity, request: ChatRequest) -> ChatResult:
        """Resolve and dispatch a request from a caller already admitted by ``admit``."""
        resolved = self._resolver.resolve(request.model)
        logger.info(
            "Chat request received",
            extra={
                "message_count": len(request.messages),
                "model": request.model,
                "provider": resolved.provider.value,
                "upstream_model": resolved.upstream_model_id,
                "workspace_id": request.workspace_id,
            },
        )

        response = await self._orchestrator.run(resolved, request)
        cost = calculate_cost(resolved, response.usage)
        result = ChatResult(
            content=response.content,
            usage=response.usage,
            model=request.model,
            provider=resolved.provider.value,
            cost=cost,
            duration_seconds=response.duration_seconds,
        )

        logger.info(
            "AI usage recorded",
            extra={
                "user_id": identity.user_id,
                "workspace_id": request.workspace_id,
                "provider": resolved.provider.value,
                "model": request.model,
                "upstream_model": response.upstream_model,
                "key_id": response.key_id,
                "usage_prompt_tokens": response.usage.prompt_tokens,
                "usage_completion_tokens": response.usage.completion_tokens,
                "usage_total_tokens": response.usage.total_tokens,
                "total_cost": cost.total_cost,
                "duration_seconds": response.duration_seconds,
            },
        )

        if request.channel_id:
            self._notify_channel(request.channel_id, identity, result)
        return result

    def _notify_channel(
        self, channel_id: str, identity: CallerIdentity, result: ChatResult
    ) -> None:
        try:
            self._notifier.notify(
                channel_id,
                AI_MESSAGE_EVENT,
                {
                    "requestedBy": identity.user_id,
                    "content": result.content,
                    "model": result.model,
                    "provider": result.provider,
                },
            )
        except Exception:
            logger.warning(
                "Failed to notify channel", extra={"channel_id": channel_id}, exc_info=True
            )
