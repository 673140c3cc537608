# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Rate Limiter

Single responsibility: Bound the rate of outbound repository requests

Leaky bucket of size one: a background ticker refills a single permit slot
every 1/N seconds. Ticks that find the slot full are dropped, so an idle
period never builds up a burst larger than one immediate permit.
"""

import logging
import threading
import time

from criage.core.errors import RateLimiterClosedError

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_SECOND = 10


class RateLimiter:
    """Process-wide permit source shared by every outbound call"""

    def __init__(self, requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND):
        """
        Initialize rate limiter and start its ticker thread.

        Args:
            requests_per_second: Permits per second; non-positive values
                fall back to the default of 10
        """
        if requests_per_second <= 0:
            requests_per_second = DEFAULT_REQUESTS_PER_SECOND

        self.requests_per_second = requests_per_second
        self.interval = 1.0 / requests_per_second

        self._cond = threading.Condition()
        # One permit is available immediately
        self._available = True
        self._closed = False
        self._stop = threading.Event()

        self._ticker = threading.Thread(
            target=self._run,
            name=f"criage-rate-limiter-{requests_per_second}",
            daemon=True
        )
        self._ticker.start()

        logger.debug(f"Rate limiter started at {requests_per_second} req/s")

    def _run(self):
        next_tick = time.monotonic() + self.interval
        while not self._stop.wait(max(0.0, next_tick - time.monotonic())):
            next_tick += self.interval
            now = time.monotonic()
            if next_tick < now:
                # Fell behind (suspended process); skip the missed ticks
                next_tick = now + self.interval

            with self._cond:
                if not self._available:
                    self._available = True
                    self._cond.notify()

    def acquire(self):
        """
        Block until a permit is available and take it.

        Raises:
            RateLimiterClosedError: If the limiter is (or gets) shut down
        """
        with self._cond:
            while not self._available and not self._closed:
                self._cond.wait()
            if self._closed:
                raise RateLimiterClosedError()
            self._available = False

    def shutdown(self):
        """Stop the ticker and release all waiters. Safe to call repeatedly."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()

        self._stop.set()
        if self._ticker is not threading.current_thread():
            self._ticker.join()

        logger.debug("Rate limiter shut down")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "RateLimiter":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
