"""Per-user sliding-window rate limits for the AI tutor routes."""

import logging
import math
import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import Depends, Request

from api.deps import get_current_user
from config import Settings, get_settings
from core.errors import RateLimitError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Counts request timestamps per key inside a moving window."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, prune_interval: float = 60.0):
        self.clock = clock
        self.prune_interval = prune_interval
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._windows: Dict[str, int] = {}
        self._last_prune = clock()
        self._lock = threading.Lock()

    def hit(self, key: str, max_requests: int, window_seconds: int) -> Optional[int]:
        """
        Record a request if the key still has quota.

        Returns:
            None when allowed, otherwise seconds until a slot frees up
        """
        now = self.clock()
        with self._lock:
            if now - self._last_prune >= self.prune_interval:
                self._prune(now)
            self._windows[key] = window_seconds
            stamps = self.requests[key]
            while stamps and now - stamps[0] >= window_seconds:
                stamps.popleft()

            if len(stamps) < max_requests:
                stamps.append(now)
                return None

            return max(1, math.ceil(stamps[0] + window_seconds - now))

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()
            self._windows.clear()

    def _prune(self, now: float) -> None:
        """Drop keys whose newest request has left its window."""
        expired = [
            key for key, stamps in self.requests.items()
            if not stamps or now - stamps[-1] >= self._windows.get(key, 0)
        ]
        for key in expired:
            del self.requests[key]
            self._windows.pop(key, None)
        self._last_prune = now
        if expired:
            logger.debug(f"Pruned {len(expired)} idle rate limit keys")


# scope -> (settings -> (max requests, window seconds), message)
SCOPES: Dict[str, Tuple[Callable[[Settings], Tuple[int, int]], str]] = {
    "ai_tutor": (
        lambda s: (s.ai_tutor_rate_limit, s.ai_tutor_rate_window_seconds),
        "Too many AI requests. Please wait before trying again.",
    ),
    "practice": (
        lambda s: (s.practice_rate_limit, s.practice_rate_window_seconds),
        "Too many practice problem requests. Please wait before trying again.",
    ),
    "quick_response": (
        lambda s: (s.quick_response_rate_limit, s.quick_response_rate_window_seconds),
        "Too many quick response requests. Please wait before trying again.",
    ),
}


def rate_limit(scope: str):
    """Build a route dependency enforcing one named quota per user."""
    limits, message = SCOPES[scope]

    async def dependency(request: Request, user: dict = Depends(get_current_user)) -> None:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return

        max_requests, window_seconds = limits(settings)
        limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
        retry_after = limiter.hit(f"{scope}:{user['id']}", max_requests, window_seconds)
        if retry_after is not None:
            logger.warning(f"Rate limit '{scope}' exceeded for user {user['id']}")
            raise RateLimitError(message, retry_after=retry_after)

    return dependency
