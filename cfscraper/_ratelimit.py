"""Client-wide request throttling: min-interval spacing + concurrency gate."""

import asyncio
import logging
import random
import time

logger = logging.getLogger("cfscraper")

POLL_INTERVAL = 0.1


class RequestThrottle:
    """Spaces dispatches and caps how many requests are in flight.

    Spacing applies to every dispatch (including challenge submissions
    and refresh probes). The concurrency gate applies once per public
    request: callers over the ceiling poll until a slot frees, so
    waiters are not served in FIFO order.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        max_concurrent: int = 1,
        jitter: float = 0.0,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.min_interval = min_interval
        self.max_concurrent = max(1, max_concurrent)
        self.jitter = jitter
        self.poll_interval = poll_interval
        self.in_flight = 0
        self._last_request: float | None = None

    def _delay(self, now: float | None = None) -> float:
        """How long to wait before the next dispatch."""
        if self._last_request is None or self.min_interval <= 0:
            return 0.0
        if now is None:
            now = time.monotonic()
        elapsed = now - self._last_request
        target = self.min_interval + random.uniform(0, self.jitter)
        return max(0.0, target - elapsed)

    def record(self) -> None:
        """Record that a dispatch is starting now."""
        self._last_request = time.monotonic()

    async def wait(self) -> float:
        """Reserve the next dispatch slot and sleep until it. Returns time waited.

        The slot is claimed before sleeping, so concurrent waiters line
        up one interval apart instead of waking together.
        """
        now = time.monotonic()
        delay = self._delay(now)
        self._last_request = now + delay
        if delay > 0:
            logger.debug("Throttle: waiting %.2fs before dispatch", delay)
            await asyncio.sleep(delay)
        return delay

    async def acquire(self) -> None:
        """Take a concurrency slot, polling while the ceiling is reached."""
        while self.in_flight >= self.max_concurrent:
            logger.debug(
                "Throttle: %d/%d requests in flight, waiting",
                self.in_flight,
                self.max_concurrent,
            )
            await asyncio.sleep(self.poll_interval)
        self.in_flight += 1

    def release(self) -> None:
        if self.in_flight > 0:
            self.in_flight -= 1
