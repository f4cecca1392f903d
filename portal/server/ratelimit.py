from __future__ import annotations

import math
import time

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter as _FixedWindowStrategy


class FixedWindowRateLimiter:
    """Allow at most ``limit`` hits per key within each ``window`` seconds."""

    def __init__(self, limit: int, window: int) -> None:
        if limit < 1 or window < 1:
            raise ValueError("limit and window must both be >= 1")
        self.limit = limit
        self.window = window
        self._item = RateLimitItemPerSecond(limit, window)
        self._storage = MemoryStorage()
        self._strategy = _FixedWindowStrategy(self._storage)

    def allow(self, key: str) -> bool:
        return self._strategy.hit(self._item, key)

    def retry_after(self, key: str) -> int:
        reset_at, _ = self._strategy.get_window_stats(self._item, key)
        return max(1, math.ceil(reset_at - time.time()))

    def reset(self) -> None:
        self._storage.reset()
