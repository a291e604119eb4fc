"""Fixed-window request limiters"""
import time
from typing import Callable, Dict, Tuple


class FixedWindowRateLimiter:
    """Counts hits per key in fixed windows.

    State lives in this process only; several API instances each keep
    their own counters. Use RedisRateLimiter when more than one runs.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    async def hit(self, key: str) -> bool:
        """Record a hit; False when key is over the limit for the current window"""
        now = self._clock()
        reset_at, count = self._windows.get(key, (0.0, 0))

        if now >= reset_at:
            self._windows[key] = (now + self.window_seconds, 1)
            self._prune(now)
            return True

        if count >= self.limit:
            return False

        self._windows[key] = (reset_at, count + 1)
        return True

    def _prune(self, now: float) -> None:
        expired = [key for key, (reset_at, _) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]


class RedisRateLimiter:
    """Fixed windows shared by every instance through Redis.

    One counter per key and window; the first hit sets its expiry.
    """

    def __init__(
        self,
        redis_client,
        limit: int,
        window_seconds: int,
        prefix: str = "rl:booking",
        clock: Callable[[], float] = time.time
    ):
        self._redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock

    def window_key(self, key: str) -> str:
        window = int(self._clock() // self.window_seconds)
        return f"{self.prefix}:{key}:{window}"

    async def hit(self, key: str) -> bool:
        redis_key = self.window_key(key)
        count = await self._redis.incr(redis_key)
        if count == 1:
            await self._redis.expire(redis_key, self.window_seconds + 10)
        return count <= self.limit
