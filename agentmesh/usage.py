"""Per-profile usage caps and pricing."""

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import date, datetime, timezone

from agentmesh.addresses import Address
from agentmesh.exceptions import RateLimitedError
from agentmesh.logging import get_logger
from agentmesh.types.agents import ModelProfile

logger = get_logger("usage")

REQUEST_WINDOW_SECONDS = 60
TOKENS_PER_WORD = 2
SECONDS_PER_DAY = 86_400


def estimate_tokens(text: str) -> int:
    """Rough token count: two tokens per whitespace-separated word."""
    return len(text.split()) * TOKENS_PER_WORD


def cost(profile: ModelProfile, tokens: int) -> int:
    """Price of ``tokens`` in micro-units under ``profile``'s pricing."""
    return tokens * profile.price_per_1k_tokens // 1000


class UsageMeter:
    """
    Enforces a profile's per-minute request cap and per-UTC-day token cap.

    A cap of 0 means unlimited. ``check`` counts the request against the
    per-minute window immediately; ``record`` adds the tokens actually used.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._requests: dict[Address, deque[float]] = {}
        self._tokens: dict[tuple[Address, date], int] = {}
        self._lock = threading.Lock()

    def check(self, profile: ModelProfile, prompt: str) -> int:
        """
        Admit one request of ``prompt`` under ``profile``'s caps.

        Returns:
            The estimated prompt tokens

        Raises:
            RateLimitedError: If either cap would be exceeded
        """
        now = self._clock()
        estimated = estimate_tokens(prompt)

        with self._lock:
            window = self._requests.setdefault(profile.address, deque())
            while window and window[0] <= now - REQUEST_WINDOW_SECONDS:
                window.popleft()

            if profile.max_requests_per_min and len(window) >= profile.max_requests_per_min:
                retry_after = math.ceil(window[0] + REQUEST_WINDOW_SECONDS - now)
                logger.warning(f"Request cap reached for profile {profile.address}")
                raise RateLimitedError(
                    f"More than {profile.max_requests_per_min} requests per minute",
                    max(retry_after, 1),
                    profile.address,
                )

            used = self._tokens.get((profile.address, _day(now)), 0)
            if profile.max_tokens_per_day and used + estimated > profile.max_tokens_per_day:
                retry_after = math.ceil(SECONDS_PER_DAY - now % SECONDS_PER_DAY)
                logger.warning(f"Daily token cap reached for profile {profile.address}")
                raise RateLimitedError(
                    f"Daily cap of {profile.max_tokens_per_day} tokens reached",
                    max(retry_after, 1),
                    profile.address,
                )

            window.append(now)
        return estimated

    def record(self, profile: ModelProfile, tokens: int) -> None:
        today = _day(self._clock())
        key = (profile.address, today)
        with self._lock:
            for stale in [k for k in self._tokens if k[1] < today]:
                del self._tokens[stale]
            self._tokens[key] = self._tokens.get(key, 0) + tokens

    def tokens_today(self, profile: ModelProfile) -> int:
        with self._lock:
            return self._tokens.get((profile.address, _day(self._clock())), 0)


def _day(timestamp: float) -> date:
    return datetime.fromtimestamp(timestamp, timezone.utc).date()
