"""
Rate Governor for source API calls.

Hey future me – this is deliberately NOT a token bucket! One importer sends exactly one
request at a time, and the governor only makes sure consecutive requests are spaced at
least 1 / requests_per_second apart. No bursts, no shared bucket between importers.

ALGORITHM: minimum interval
- interval = 1 / requests_per_second (10 rps → 100 ms)
- before each request: elapsed = now - last_request_time
- elapsed < interval → sleep(interval - elapsed)
- no RateLimitConfig → no waiting at all

BACKOFF on 429 (retry path in the request client):
- Retry-After header wins if the source sends one
- otherwise retry_delay_ms * 2^attempt (1s, 2s, 4s, ...)
- capped at MAX_BACKOFF_SECONDS

USAGE:
    governor = RateGovernor(config=RateLimitConfig(requests_per_second=10, requests_per_minute=180))

    await governor.wait(counters)          # before every request
    counters.record_request(governor.now())
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from cratepilot.domain.entities import RateLimitConfig, RequestCounters

logger = logging.getLogger(__name__)

# Spotify can send Retry-After of several minutes under heavy usage. Capping lower than that
# means we ignore the header and walk straight into the next 429.
MAX_BACKOFF_SECONDS = 600.0


@dataclass
class RateGovernor:
    """Minimum-interval throttle for one importer.

    Attributes:
        config: Request budget, None = unthrottled
        clock: Monotonic clock in seconds (swappable for tests)
        sleep: Coroutine used to suspend (swappable for tests)
    """

    config: RateLimitConfig | None = None
    clock: Callable[[], float] = field(default=time.monotonic)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two requests (0.0 when unthrottled)."""
        if self.config is None:
            return 0.0
        return 1.0 / self.config.requests_per_second

    def now(self) -> float:
        return self.clock()

    def delay_for(self, last_request_time: float) -> float:
        """Seconds the next request still has to wait."""
        if self.config is None or last_request_time <= 0.0:
            return 0.0
        elapsed = self.clock() - last_request_time
        return max(0.0, self.min_interval - elapsed)

    async def wait(self, counters: RequestCounters) -> float:
        """Suspend until the next request is allowed.

        Returns:
            Seconds actually waited
        """
        delay = self.delay_for(counters.last_request_time)
        if delay > 0:
            logger.debug(f"RateGovernor: waiting {delay * 1000:.0f}ms before next request")
            await self.sleep(delay)
        return delay

    def retry_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Backoff before retrying a 429, in seconds.

        Args:
            attempt: Zero-based retry attempt
            retry_after: Retry-After header value in seconds, if the source sent one
        """
        if retry_after is not None:
            delay = retry_after
        elif self.config is not None:
            delay = (self.config.retry_delay_ms / 1000.0) * (2**attempt)
        else:
            delay = float(2**attempt)
        return min(delay, MAX_BACKOFF_SECONDS)

    @property
    def retry_attempts(self) -> int:
        """How often a 429 is retried before giving up."""
        return self.config.retry_attempts if self.config is not None else 0


__all__ = ["MAX_BACKOFF_SECONDS", "RateGovernor"]
