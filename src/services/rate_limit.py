"""Per-client sliding-window admission control for model-backed endpoints.

Each client key (normally the caller's IP) keeps the timestamps of its
accepted requests. A request is admitted while fewer than ``limit`` timestamps
fall inside the trailing window; rejected requests are not recorded.

Degraded guarantee: the window lives in process memory. With N server
instances behind a load balancer each instance enforces its own window, so a
client can make up to N * limit requests per window in total. A shared
counting store would be needed for a global limit; none is configured.
"""

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.requests import Request

from src.utils.logger import logger

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds when the oldest counted request leaves the window
    retry_after: int  # whole seconds until reset_at, at least 1 when rejected


class SlidingWindowRateLimiter:
    """Sliding-window limiter with an atomic check-and-record per call."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
        name: str = "default",
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        # Guards every key's deque
        self._lock = asyncio.Lock()

    async def check(self, key: str) -> RateLimitResult:
        """Admit or reject one request for key, recording it if admitted."""
        async with self._lock:
            now = self._clock()
            window_start = now - self.window_seconds
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now
            timestamps = self._requests.setdefault(key, deque())
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

            if len(timestamps) >= self.limit:
                reset_at = timestamps[0] + self.window_seconds
                logger.warning(f"Rate limit '{self.name}' exceeded for {key} ({self.limit}/{self.window_seconds:.0f}s)")
                return RateLimitResult(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=max(1, math.ceil(reset_at - now)),
                )

            timestamps.append(now)
            reset_at = timestamps[0] + self.window_seconds
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - len(timestamps),
                reset_at=reset_at,
                retry_after=0,
            )

    def _sweep(self, window_start: float) -> None:
        """Drop keys whose newest request has left the window."""
        stale = [key for key, timestamps in self._requests.items() if not timestamps or timestamps[-1] <= window_start]
        for key in stale:
            del self._requests[key]
        if stale:
            logger.debug(f"Rate limit '{self.name}' swept {len(stale)} idle client(s)")

    def reset(self, key: Optional[str] = None) -> None:
        """Forget recorded requests for one key, or for all keys."""
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)


def get_client_ip(request: Request) -> str:
    """Client key from forwarding headers. Callers without one share the "unknown" bucket."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return UNKNOWN_CLIENT
