"""
Rate limiter singleton, shared across the application.

Uses slowapi (built on top of limits) for its moving-window storage. The key
is not the plain remote address: the throttle middleware in main.py first asks
RateLimitKeyExtractor for a key and stores it on ``request.state``; requests
that carry the sentinel key are let through untouched.

No SlowAPIMiddleware or ``@limiter.limit`` decorator is installed, so slowapi
never calls ``key_func`` on its own. The Limiter only holds the moving-window
storage that Throttle hits; ``rate_limit_key`` is read back for request logs.

In tests the limiter is enabled=False so that rapid test requests
don't trigger 429 responses (see conftest.py).
"""

import asyncio
import logging
import math
import time
from typing import Optional

from fastapi import Request
from limits import RateLimitItemPerSecond
from slowapi import Limiter

from hypixel_gateway.core.config import RateLimitStrategy
from hypixel_gateway.core.errors import RateLimitedError
from hypixel_gateway.services.rate_limit import SENTINEL_KEY

logger = logging.getLogger(__name__)

SCOPE = "gateway"


def rate_limit_key(request: Request) -> Optional[str]:
    return getattr(request.state, "rate_limit_key", None)


limiter = Limiter(key_func=rate_limit_key, strategy="moving-window", enabled=True)


class Throttle:
    """
    Applies ``burst`` hits per ``period`` seconds to every non-sentinel key.

    Error strategy raises RateLimitedError; Delay strategy waits until the
    window has room again and then lets the request proceed.
    """

    def __init__(self, period: int, burst: int, strategy: RateLimitStrategy):
        self.item = RateLimitItemPerSecond(burst, period)
        self.strategy = RateLimitStrategy(strategy)

    def _seconds_until_reset(self, key: str) -> float:
        stats = limiter.limiter.get_window_stats(self.item, SCOPE, key)
        return max(stats.reset_time - time.time(), 0.0)

    async def acquire(self, key: str) -> None:
        if not limiter.enabled or key == SENTINEL_KEY:
            return

        while not limiter.limiter.hit(self.item, SCOPE, key):
            wait = self._seconds_until_reset(key)
            if self.strategy is RateLimitStrategy.ERROR:
                logger.info(f"Rate limit exceeded for {key}")
                retry_after = max(math.ceil(wait), 1)
                raise RateLimitedError(
                    f"Too many requests, retry after {retry_after}s", retry_after
                )
            logger.info(f"Delaying {key} for {wait:.3f}s")
            await asyncio.sleep(max(wait, 0.01))
