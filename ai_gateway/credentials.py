"""Per-provider API key pool with cool-down rotation."""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .constants import CREDENTIAL_COOL_DOWN_SECONDS
from .errors import NoHealthyCredentialError
from .model_registry import Provider
from .schemas import CredentialStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    provider: Provider
    key_id: str
    secret: str = field(repr=False)


@dataclass
class _KeyState:
    credential: Credential
    cooling_down_until: float | None = None
    success_count: int = 0
    rate_limited_count: int = 0


class CredentialPool:
    """Hands out healthy credentials round-robin and tracks cool-downs.

    All state lives in one table guarded by a single lock. The lock only covers
    in-memory reads and writes; callers hold a ``Credential`` across the
    upstream call without holding the lock.
    """

    def __init__(
        self,
        credentials: Iterable[Credential],
        cool_down_seconds: float = CREDENTIAL_COOL_DOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cool_down_seconds = cool_down_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[Provider, list[_KeyState]] = {}
        self._cursors: dict[Provider, int] = {}
        for credential in credentials:
            self._states.setdefault(credential.provider, []).append(_KeyState(credential))
            self._cursors.setdefault(credential.provider, 0)

        logger.info(
            "Credential pool initialized",
            extra={
                "key_counts": {
                    provider.value: len(states) for provider, states in self._states.items()
                }
            },
        )

    @classmethod
    def from_secrets(
        cls,
        secrets: Mapping[Provider, Sequence[str]],
        cool_down_seconds: float = CREDENTIAL_COOL_DOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CredentialPool":
        credentials = [
            Credential(provider=provider, key_id=f"{provider.value}-{index}", secret=secret)
            for provider, provider_secrets in secrets.items()
            for index, secret in enumerate(provider_secrets)
        ]
        return cls(credentials, cool_down_seconds=cool_down_seconds, clock=clock)

    def acquire(self, provider: Provider) -> Credential:
        with self._lock:
            states = self._states.get(provider, [])
            now = self._clock()
            start = self._cursors.get(provider, 0)
            for offset in range(len(states)):
                index = (start + offset) % len(states)
                state = states[index]
                if state.cooling_down_until is not None:
                    if now < state.cooling_down_until:
                        continue
                    state.cooling_down_until = None
                    logger.info(
                        "Credential recovered from cool-down",
                        extra={"key_id": state.credential.key_id},
                    )
                self._cursors[provider] = (index + 1) % len(states)
                return state.credential

        raise NoHealthyCredentialError(provider.value)

    def report_rate_limited(self, credential: Credential) -> None:
        with self._lock:
            state = self._find(credential)
            state.cooling_down_until = self._clock() + self._cool_down_seconds
            state.rate_limited_count += 1

        logger.warning(
            "Credential rate limited upstream; cooling down",
            extra={"key_id": credential.key_id, "cool_down_seconds": self._cool_down_seconds},
        )

    def report_success(self, credential: Credential) -> None:
        with self._lock:
            self._find(credential).success_count += 1

    def snapshot(self) -> list[CredentialStatus]:
        with self._lock:
            now = self._clock()
            statuses = []
            for states in self._states.values():
                for state in states:
                    remaining = None
                    if state.cooling_down_until is not None and now < state.cooling_down_until:
                        remaining = round(state.cooling_down_until - now, 1)
                    statuses.append(
                        CredentialStatus(
                            provider=state.credential.provider.value,
                            key_id=state.credential.key_id,
                            available=remaining is None,
                            cooling_down_for=remaining,
                            success_count=state.success_count,
                            rate_limited_count=state.rate_limited_count,
                        )
                    )
            return statuses

    def _find(self, credential: Credential) -> _KeyState:
        for state in self._states.get(credential.provider, []):
            if state.credential == credential:
                return state
        raise KeyError(f"Unknown credential: {credential.key_id}")
