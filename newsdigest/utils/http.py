"""
HTTP utilities for NewsDigest.
"""
import asyncio
import time
import logging
from collections import defaultdict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 60.0
FAILURE_THRESHOLD = 3


def host_of(url: str) -> str:
    """Network location of a URL, used as the rate limiting key."""
    return urlparse(url).netloc.lower()


class RateLimiter:
    """
    Spaces out requests to each provider host and widens the gap for hosts
    that keep failing.
    """
    def __init__(self, requests_per_second: float = 5.0, clock=time.monotonic, sleep=asyncio.sleep):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.min_interval = 1.0 / requests_per_second
        self._clock = clock
        self._sleep = sleep
        self.last_requests = defaultdict(lambda: float('-inf'))
        self.locks = defaultdict(asyncio.Lock)
        self.failure_counts = defaultdict(int)
        self.intervals = defaultdict(lambda: self.min_interval)

    async def acquire(self, host: str):
        """
        Wait until a request to the host is allowed.

        Args:
            host: The provider host to rate limit
        """
        async with self.locks[host]:
            elapsed = self._clock() - self.last_requests[host]
            wait_time = self.intervals[host] - elapsed

            if wait_time > 0:
                logger.debug(f"Rate limiting {host}, waiting {wait_time:.2f}s")
                await self._sleep(wait_time)

            self.last_requests[host] = self._clock()

    def report_success(self, host: str):
        """
        Report a successful request; the interval decays back to the base rate.

        Args:
            host: The host that answered successfully
        """
        self.failure_counts[host] = 0
        if self.intervals[host] > self.min_interval:
            self.intervals[host] = max(self.min_interval, self.intervals[host] * 0.8)

    def report_failure(self, host: str):
        """
        Report a failed request; repeated failures double the interval.

        Args:
            host: The host that failed
        """
        self.failure_counts[host] += 1

        if self.failure_counts[host] >= FAILURE_THRESHOLD:
            self.intervals[host] = min(MAX_BACKOFF_SECONDS, max(1.0, self.intervals[host] * 2.0))
            logger.warning(
                f"Increased request interval for {host} to {self.intervals[host]:.2f}s "
                f"after {self.failure_counts[host]} failures"
            )
