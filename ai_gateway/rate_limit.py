"""Caller-level request throttling.

Fixed-window counters keyed by (policy, caller). Two policies run side by
side: a strict per-minute budget for AI requests and a looser budget for the
general API surface. Upstream credential rate limits are a separate concern
handled by the credential pool.
"""

import logging
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


logger = logging.getLogger(__name__)

_RATE_LIMIT_PATTERN = re.compile(r"^\s*(\d+)\s*/\s*(\d*)\s*([a-z]+)\s*$")
_UNIT_SECONDS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


def parse_rate_limit(limit: str) -> tuple[int, int]:
    """
    Parse a rate limit string into a request count and window length.

    Accepts ``"10/minute"`` as well as a multiplied unit such as
    ``"500/15minutes"``.

    Returns:
        Tuple of (requests_count, window_seconds)

    Raises:
        ValueError: If the format or unit is not recognized
    """
    match = _RATE_LIMIT_PATTERN.match(limit.lower())
    if not match:
        raise ValueError(f"Invalid rate limit format: {limit}")

    count, multiplier, unit = match.groups()
    if unit not in _UNIT_SECONDS:
        raise ValueError(f"Unknown time unit in rate limit: {unit}")

    window = int(multiplier or 1) * _UNIT_SECONDS[unit]
    if window <= 0:
        raise ValueError(f"Rate limit window must be positive: {limit}")
    return int(count), window


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    limit: int
    window_seconds: float

    @classmethod
    def from_string(cls, name: str, limit: str) -> "RateLimitPolicy":
        count, window = parse_rate_limit(limit)
        return cls(name=name, limit=count, window_seconds=window)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    retry_after: float = 0.0


@dataclass
class _RateWindow:
    count: int
    window_start: float


def caller_key(user_id: str | None, client_host: str | None) -> str:
    """Prefer the authenticated identity, else the transport peer address."""
    if user_id:
        return f"user:{user_id}"
    return f"ip:{client_host or 'unknown'}"


class RateLimiter:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 300.0,
    ) -> None:
        self._clock = clock
        self._sweep_interval_seconds = sweep_interval_seconds
        self._lock = threading.Lock()
        self._windows: dict[tuple[str, str], _RateWindow] = {}
        self._window_lengths: dict[str, float] = {}
        self._last_sweep = clock()

    def check_and_increment(self, policy: RateLimitPolicy, key: str) -> RateDecision:
        with self._lock:
            now = self._clock()
            self._window_lengths[policy.name] = policy.window_seconds
            if now - self._last_sweep >= self._sweep_interval_seconds:
                self._sweep(now)

            window = self._windows.get((policy.name, key))
            if window is None or now - window.window_start >= policy.window_seconds:
                window = _RateWindow(count=0, window_start=now)
                self._windows[(policy.name, key)] = window

            if window.count < policy.limit:
                window.count += 1
                return RateDecision(allowed=True, remaining=policy.limit - window.count)

            elapsed = now - window.window_start
            return RateDecision(
                allowed=False,
                remaining=0,
                retry_after=policy.window_seconds - elapsed,
            )

    def cleanup_expired(self) -> int:
        """Drop windows whose period has elapsed; returns how many were removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        expired = [
            window_key
            for window_key, window in self._windows.items()
            if now - window.window_start >= self._window_lengths[window_key[0]]
        ]
        for window_key in expired:
            del self._windows[window_key]
        self._last_sweep = now
        return len(expired)
