import asyncio
import unittest

from ai_gateway.credentials import Credential, CredentialPool
from ai_gateway.errors import (
    GatewayUnavailableError,
    UpstreamClassification,
    UpstreamError,
    UpstreamFailureError,
)
from ai_gateway.model_registry import Provider, ResolvedModel
from ai_gateway.orchestration.direct import DirectChatOrchestrator
from ai_gateway.orchestration.langgraph_flow import LangGraphChatOrchestrator
from ai_gateway.providers.base import ProviderResponse
from ai_gateway.schemas import ChatRequest, GenerationParams, Message, Usage


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ScriptedProvider:
    """Replays one outcome per call: an exception to raise or a response to return."""

    def __init__(self, *outcomes: ProviderResponse | Exception) -> None:
        self._outcomes = list(outcomes)
        self.key_ids: list[str] = []

    async def invoke(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        params: GenerationParams,
        credential: Credential,
    ) -> ProviderResponse:
        self.key_ids.append(credential.key_id)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return ProviderResponse(
            content=outcome.content,
            usage=outcome.usage,
            upstream_model=outcome.upstream_model,
            key_id=credential.key_id,
            duration_seconds=outcome.duration_seconds,
        )


class HangingProvider:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def invoke(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        params: GenerationParams,
        credential: Credential,
    ) -> ProviderResponse:
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


def _rate_limited() -> UpstreamError:
    return UpstreamError(UpstreamClassification.RATE_LIMITED, "Rate limit reached", status_code=429)


class OrchestratorContract:
    """Behaviour both dispatch strategies must share."""

    orchestrator_cls: type[DirectChatOrchestrator] | type[LangGraphChatOrchestrator]

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.pool = CredentialPool.from_secrets(
            {Provider.PRIMARY: ["sk-a", "sk-b", "sk-c"], Provider.SECONDARY: ["sk-ant-a"]},
            cool_down_seconds=60,
            clock=self.clock,
        )
        self.request = ChatRequest(messages=[{"role": "user", "content": "hello"}], model="gpt-5")
        self.resolved = ResolvedModel(
            provider=Provider.PRIMARY, upstream_model_id="gpt-4o", logical_name="gpt-5"
        )
        self.ok = ProviderResponse(
            content="ok",
            usage=Usage.from_counts(5, 7),
            upstream_model="gpt-4o",
            key_id="",
            duration_seconds=0.1,
        )

    def _orchestrator(self, provider: object, **kwargs: float) -> DirectChatOrchestrator:
        return self.orchestrator_cls(
            providers={Provider.PRIMARY: provider, Provider.SECONDARY: provider},
            pool=self.pool,
            **kwargs,  # type: ignore[arg-type]
        )

    def _available(self) -> dict[str, bool]:
        return {status.key_id: status.available for status in self.pool.snapshot()}

    async def test_success_on_first_attempt(self) -> None:
        provider = ScriptedProvider(self.ok)

        response = await self._orchestrator(provider).run(self.resolved, self.request)

        self.assertEqual(response.content, "ok")
        self.assertEqual(response.key_id, "openai-0")
        self.assertEqual(provider.key_ids, ["openai-0"])

    async def test_rotates_to_next_credential_after_rate_limit(self) -> None:
        provider = ScriptedProvider(_rate_limited(), self.ok)

        response = await self._orchestrator(provider).run(self.resolved, self.request)

        self.assertEqual(response.content, "ok")
        self.assertEqual(provider.key_ids, ["openai-0", "openai-1"])
        available = self._available()
        self.assertFalse(available["openai-0"])
        self.assertTrue(available["openai-1"])

    async def test_exhausted_attempts_surface_unavailable(self) -> None:
        provider = ScriptedProvider(_rate_limited(), _rate_limited(), _rate_limited())

        with self.assertRaises(GatewayUnavailableError):
            await self._orchestrator(provider).run(self.resolved, self.request)

        self.assertEqual(provider.key_ids, ["openai-0", "openai-1", "openai-2"])
        self.assertFalse(any(self._available()[f"openai-{i}"] for i in range(3)))

    async def test_single_cooling_key_fails_fast_without_upstream_call(self) -> None:
        resolved = ResolvedModel(
            provider=Provider.SECONDARY,
            upstream_model_id="claude-3-5-haiku-20241022",
            logical_name="claude-3-5-haiku-20241022",
        )
        provider = ScriptedProvider(_rate_limited(), self.ok)
        orchestrator = self._orchestrator(provider)

        with self.assertRaises(GatewayUnavailableError):
            await orchestrator.run(resolved, self.request)
        self.assertEqual(provider.key_ids, ["anthropic-0"])

        with self.assertRaises(GatewayUnavailableError) as ctx:
            await orchestrator.run(resolved, self.request)
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(provider.key_ids, ["anthropic-0"])

        self.clock.now += 60
        response = await orchestrator.run(resolved, self.request)
        self.assertEqual(response.key_id, "anthropic-0")

    async def test_non_retryable_failure_is_surfaced_without_rotation(self) -> None:
        cases = {
            UpstreamClassification.AUTH_REJECTED: 502,
            UpstreamClassification.INVALID_REQUEST: 400,
            UpstreamClassification.UNAVAILABLE: 503,
            UpstreamClassification.UNKNOWN: 502,
        }
        for classification, status_code in cases.items():
            with self.subTest(classification=classification):
                provider = ScriptedProvider(UpstreamError(classification, "upstream detail"))

                with self.assertRaises(UpstreamFailureError) as ctx:
                    await self._orchestrator(provider).run(self.resolved, self.request)

                self.assertEqual(ctx.exception.status_code, status_code)
                self.assertEqual(len(provider.key_ids), 1)
                self.assertTrue(all(self._available().values()))

    async def test_invalid_request_message_carries_upstream_detail(self) -> None:
        provider = ScriptedProvider(
            UpstreamError(UpstreamClassification.INVALID_REQUEST, "max_tokens too large")
        )

        with self.assertRaises(UpstreamFailureError) as ctx:
            await self._orchestrator(provider).run(self.resolved, self.request)

        self.assertIn("max_tokens too large", ctx.exception.message)

    async def test_timeout_is_unavailable_without_cool_down(self) -> None:
        provider = HangingProvider()

        with self.assertRaises(UpstreamFailureError) as ctx:
            await self._orchestrator(provider, invoke_timeout_seconds=0.01).run(
                self.resolved, self.request
            )

        self.assertIs(ctx.exception.classification, UpstreamClassification.UNAVAILABLE)
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertTrue(provider.cancelled)
        self.assertTrue(all(self._available().values()))

    async def test_cancellation_propagates_without_cool_down(self) -> None:
        provider = HangingProvider()
        task = asyncio.ensure_future(self._orchestrator(provider).run(self.resolved, self.request))
        await provider.started.wait()

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertTrue(all(self._available().values()))

    async def test_raises_for_missing_provider(self) -> None:
        orchestrator = self.orchestrator_cls(providers={}, pool=self.pool)

        with self.assertRaisesRegex(RuntimeError, "Unsupported provider: openai"):
            await orchestrator.run(self.resolved, self.request)


class DirectOrchestratorTests(OrchestratorContract, unittest.IsolatedAsyncioTestCase):
    orchestrator_cls = DirectChatOrchestrator


class LangGraphOrchestratorTests(OrchestratorContract, unittest.IsolatedAsyncioTestCase):
    orchestrator_cls = LangGraphChatOrchestrator


if __name__ == "__main__":
    unittest.main()
