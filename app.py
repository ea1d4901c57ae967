"""AI message gateway using FastAPI + Mangum for AWS Lambda."""

import asyncio
import logging
from collections.abc import Coroutine
from functools import lru_cache
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from mangum import Mangum

from ai_gateway.auth import CallerIdentity, StaticTokenVerifier
from ai_gateway.config import get_settings
from ai_gateway.constants import DISCONNECT_POLL_INTERVAL_SECONDS
from ai_gateway.credentials import CredentialPool
from ai_gateway.errors import (
    CallerRateLimitedError,
    ClientClosedRequestError,
    GatewayError,
    GeneralRateLimitedError,
    UpstreamClassification,
    UpstreamFailureError,
)
from ai_gateway.infra.runtime import (
    ensure_langsmith_configured,
    flush_langsmith_traces,
    get_anthropic_messages_runnable,
    get_openai_chat_runnable,
    load_provider_secrets,
)
from ai_gateway.model_registry import ModelResolver, Provider, display_name
from ai_gateway.notifications import LoggingNotifier
from ai_gateway.orchestration.base import ChatOrchestrator
from ai_gateway.orchestration.direct import DirectChatOrchestrator
from ai_gateway.orchestration.langgraph_flow import LangGraphChatOrchestrator
from ai_gateway.providers.anthropic_provider import AnthropicChatProvider
from ai_gateway.providers.base import ChatProvider
from ai_gateway.providers.openai_provider import OpenAIChatProvider
from ai_gateway.rate_limit import RateLimiter, caller_key
from ai_gateway.schemas import (
    ChatRequest,
    ChatResponse,
    CredentialStatus,
    ErrorResponse,
    ModelMetadata,
)
from ai_gateway.services.chat_service import ChatService

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

T = TypeVar("T")


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    return RateLimiter()


@lru_cache(maxsize=1)
def get_credential_pool() -> CredentialPool:
    settings = get_settings()
    return CredentialPool.from_secrets(
        load_provider_secrets(settings),
        cool_down_seconds=settings.CREDENTIAL_COOL_DOWN_SECONDS,
    )


@lru_cache(maxsize=1)
def get_model_resolver() -> ModelResolver:
    settings = get_settings()
    return ModelResolver(settings.MODEL_ALIASES, secondary_prefix=settings.SECONDARY_MODEL_PREFIX)


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    settings = get_settings()
    providers: dict[Provider, ChatProvider] = {
        Provider.PRIMARY: OpenAIChatProvider(get_chat_runnable=get_openai_chat_runnable),
        Provider.SECONDARY: AnthropicChatProvider(
            get_messages_runnable=get_anthropic_messages_runnable,
            default_max_tokens=settings.ANTHROPIC_DEFAULT_MAX_TOKENS,
        ),
    }
    orchestrator_cls: type[DirectChatOrchestrator] | type[LangGraphChatOrchestrator] = (
        LangGraphChatOrchestrator
        if settings.ORCHESTRATION_STRATEGY == "langgraph"
        else DirectChatOrchestrator
    )
    orchestrator: ChatOrchestrator = orchestrator_cls(
        providers=providers,
        pool=get_credential_pool(),
        max_attempts=settings.DISPATCH_MAX_ATTEMPTS,
        invoke_timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
    )
    logger.info(
        "Chat service initialized",
        extra={"orchestration_strategy": settings.ORCHESTRATION_STRATEGY},
    )
    return ChatService(
        verifier=StaticTokenVerifier(settings.AUTH_TOKENS),
        rate_limiter=get_rate_limiter(),
        ai_policy=settings.ai_policy(),
        resolver=get_model_resolver(),
        orchestrator=orchestrator,
        notifier=LoggingNotifier(),
    )


def enforce_general_rate_limit(request: Request, response: Response) -> None:
    """Apply the general API policy keyed by the transport peer address."""
    settings = get_settings()
    if not settings.GENERAL_RATE_LIMIT_ENABLED:
        return
    policy = settings.general_policy()
    client_host = request.client.host if request.client else None
    decision = get_rate_limiter().check_and_increment(policy, caller_key(None, client_host))
    if not decision.allowed:
        logger.warning(
            "General rate limit exceeded",
            extra={"client_host": client_host, "path": request.url.path},
        )
        raise GeneralRateLimitedError(decision.retry_after)
    response.headers["X-RateLimit-Limit"] = str(policy.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)


def admit_ai_caller(
    request: Request, authorization: str | None = Header(default=None)
) -> CallerIdentity:
    """Authenticate and charge the AI policy before the request body is validated."""
    client_host = request.client.host if request.client else None
    return get_chat_service().admit(authorization, client_host)


async def _run_until_disconnected(request: Request, work: Coroutine[Any, Any, T]) -> T:
    """Await ``work`` but cancel it as soon as the caller goes away."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected; cancelling in-flight chat request")
                task.cancel()
                await asyncio.wait({task})
                raise ClientClosedRequestError()
    except asyncio.CancelledError:
        task.cancel()
        raise


app = FastAPI()
router = APIRouter(prefix="/api")
limited_router = APIRouter(prefix="/api", dependencies=[Depends(enforce_general_rate_limit)])


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    headers: dict[str, str] = {}
    retry_after = None
    if isinstance(exc, CallerRateLimitedError):
        retry_after = exc.retry_after_seconds
        headers["Retry-After"] = str(retry_after)
    body = ErrorResponse(error=exc.message, retry_after=retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    body = ErrorResponse(error=f"Invalid request: {details}")
    return JSONResponse(status_code=400, content=body.model_dump(by_alias=True, exclude_none=True))


@limited_router.post("/ai/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    http_request: Request,
    identity: CallerIdentity = Depends(admit_ai_caller),
) -> ChatResponse:
    """Route a chat request to the resolved upstream provider."""
    ensure_langsmith_configured()
    try:
        result = await _run_until_disconnected(
            http_request,
            get_chat_service().handle_chat(identity, request),
        )
        return ChatResponse(data=result)
    except GatewayError:
        raise
    except Exception as e:
        logger.exception("Chat request failed")
        raise UpstreamFailureError(
            UpstreamClassification.UNKNOWN, "Failed to process AI message"
        ) from e
    finally:
        flush_langsmith_traces()


@limited_router.get("/models", response_model=list[ModelMetadata])
def list_models() -> list[ModelMetadata]:
    return [
        ModelMetadata(
            id=resolved.logical_name,
            provider=resolved.provider.value,
            upstream_model=resolved.upstream_model_id,
            display_name=display_name(resolved.logical_name),
        )
        for resolved in get_model_resolver().list_models()
    ]


@limited_router.get("/ai/credentials", response_model=list[CredentialStatus])
def credential_health(authorization: str | None = Header(default=None)) -> list[CredentialStatus]:
    """Key health per provider; secrets are never included."""
    get_chat_service().authenticate(authorization)
    return get_credential_pool().snapshot()


@router.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(router)
app.include_router(limited_router)


handler = Mangum(app)
