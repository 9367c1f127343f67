import math
import time
from collections.abc import Callable

from cachetools import TTLCache
from loguru import logger

from recommender.core.config import settings
from recommender.core.exceptions import RateLimited
from recommender.core.security import redact_token


class FixedWindowRateLimiter:
    """
    Per-identity fixed-window request counter.

    Each identity's window opens on its first request; the TTLCache drops the
    counter when the window ends, so the next request starts a fresh window.
    Checks never await, which makes each check atomic on the event loop.
    """

    def __init__(
        self,
        max_requests: int = settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds: int = settings.RATE_LIMIT_WINDOW_SECONDS,
        maxsize: int = 100_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._timer = timer
        self._windows: TTLCache = TTLCache(maxsize=maxsize, ttl=window_seconds, timer=timer)

    def hit(self, identity: str) -> None:
        """Count one request for `identity`; raise RateLimited when over the cap."""
        window = self._windows.get(identity)
        if window is None:
            self._windows[identity] = [self._timer(), 1]
            return

        if window[1] >= self.max_requests:
            retry_after = max(1, math.ceil(window[0] + self.window_seconds - self._timer()))
            logger.info(f"Rate limit exceeded for {redact_token(identity)}, retry in {retry_after}s")
            raise RateLimited(retry_after=retry_after)
        window[1] += 1

    def remaining(self, identity: str) -> int:
        window = self._windows.get(identity)
        return self.max_requests - (window[1] if window else 0)
