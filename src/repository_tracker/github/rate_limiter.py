"""
Rate limiter for GitHub API requests.

One instance is shared by every client of a sync run. It owns the quota
counters and serializes the "wait if needed" decision made before each
request.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateLimitInfo:
    """Information about current rate limit status."""

    limit: int = 5000
    remaining: int = 5000
    reset_at: float = 0.0  # epoch seconds
    used: int = 0


class RateLimiter:
    """
    Rate limiter for the GitHub API.

    ``acquire()`` is awaited before every request; ``record_response()``
    is fed the headers of every response. When the remaining quota drops
    to ``min_remaining`` the next ``acquire()`` blocks until the quota
    window resets.
    """

    def __init__(
        self,
        requests_per_second: float = 5.0,
        min_remaining: int = 0,
        reset_buffer: float = 1.0,
    ):
        """
        Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second
            min_remaining: Remaining quota at which requests block until reset
            reset_buffer: Extra seconds waited past the reported reset time
        """
        self.requests_per_second = requests_per_second
        self.min_remaining = min_remaining
        self.reset_buffer = reset_buffer

        self._rate_limit = RateLimitInfo()
        self._last_request_time: float = 0
        self._request_count: int = 0
        self._lock = asyncio.Lock()

    @property
    def rate_limit(self) -> RateLimitInfo:
        """Get current rate limit info."""
        return self._rate_limit

    @property
    def request_count(self) -> int:
        """Number of requests dispatched through this limiter."""
        return self._request_count

    def record_response(self, headers: Mapping[str, str]) -> None:
        """
        Update rate limit info from response headers.

        Args:
            headers: Response headers from GitHub API
        """
        headers = {k.lower(): v for k, v in headers.items()}
        try:
            if "x-ratelimit-limit" in headers:
                self._rate_limit.limit = int(headers["x-ratelimit-limit"])
            if "x-ratelimit-remaining" in headers:
                self._rate_limit.remaining = int(headers["x-ratelimit-remaining"])
            if "x-ratelimit-used" in headers:
                self._rate_limit.used = int(headers["x-ratelimit-used"])
            if "x-ratelimit-reset" in headers:
                self._rate_limit.reset_at = float(headers["x-ratelimit-reset"])
        except (ValueError, TypeError):
            logger.debug("Ignoring unparseable rate limit headers: %s", headers)

    def is_exhausted(self) -> bool:
        """True when the last seen quota leaves no room for another request."""
        return self._rate_limit.remaining <= self.min_remaining

    async def acquire(self) -> None:
        """
        Acquire permission to make a request.

        Waits for the minimum request spacing, and for the quota reset
        when the remaining quota is exhausted.
        """
        async with self._lock:
            min_interval = 1.0 / self.requests_per_second
            elapsed = time.time() - self._last_request_time
            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)

            if self.is_exhausted():
                wait_time = self.seconds_until_reset()
                if wait_time > 0:
                    logger.warning(
                        "Rate limit exhausted (%d remaining). Waiting %.0fs until reset...",
                        self._rate_limit.remaining,
                        wait_time,
                    )
                    await asyncio.sleep(wait_time)
                # The window has reset; assume a full quota until headers say otherwise
                self._rate_limit.remaining = self._rate_limit.limit

            self._last_request_time = time.time()
            self._request_count += 1

    def seconds_until_reset(self) -> float:
        """Seconds to wait until the quota window resets (0 if already reset)."""
        if not self._rate_limit.reset_at:
            return 0
        wait = self._rate_limit.reset_at - time.time()
        return wait + self.reset_buffer if wait > 0 else 0

    def get_retry_after(self, headers: Mapping[str, str]) -> Optional[float]:
        """
        Get retry-after value from headers.

        Args:
            headers: Response headers

        Returns:
            Seconds to wait, or None if not specified
        """
        headers = {k.lower(): v for k, v in headers.items()}
        retry_after = headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                return None
        return None
