# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for RateLimiter

Timing bounds are kept loose enough for slow CI machines.
"""

import threading
import time

import pytest

from criage.core.errors import RateLimiterClosedError
from criage.registry.ratelimit import DEFAULT_REQUESTS_PER_SECOND, RateLimiter


@pytest.fixture
def limiter():
    """20 req/s limiter"""
    limiter = RateLimiter(20)
    yield limiter
    limiter.shutdown()


class TestConstruction:
    """Test constructor argument handling"""

    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_rate_falls_back_to_default(self, value):
        """Should coerce non-positive rates to 10 req/s"""
        limiter = RateLimiter(value)
        try:
            assert limiter.requests_per_second == DEFAULT_REQUESTS_PER_SECOND
            assert limiter.interval == pytest.approx(0.1)
        finally:
            limiter.shutdown()

    def test_first_permit_is_immediate(self, limiter):
        """Should hand out one permit without waiting"""
        start = time.monotonic()
        limiter.acquire()
        assert time.monotonic() - start < 0.04


class TestThroughput:
    """Test rate bound"""

    def test_sequential_acquires_are_spaced(self, limiter):
        """Should not exceed N permits per second"""
        start = time.monotonic()
        for _ in range(11):
            limiter.acquire()
        elapsed = time.monotonic() - start

        # 1 immediate permit + 10 ticks of 50ms
        assert elapsed >= 0.45

    def test_concurrent_acquires_share_the_rate(self, limiter):
        """Should bound total throughput across threads"""
        def worker():
            for _ in range(3):
                limiter.acquire()

        start = time.monotonic()
        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)
        elapsed = time.monotonic() - start

        # 12 permits: 1 immediate + 11 ticks of 50ms
        assert elapsed >= 0.5

    def test_idle_period_does_not_build_a_burst(self):
        """Should allow only one immediate permit after being idle"""
        limiter = RateLimiter(10)
        try:
            time.sleep(0.35)
            start = time.monotonic()
            for _ in range(3):
                limiter.acquire()
            elapsed = time.monotonic() - start
        finally:
            limiter.shutdown()

        # Permits 2 and 3 each need a fresh tick
        assert elapsed >= 0.09


class TestShutdown:
    """Test shutdown behavior"""

    def test_shutdown_is_idempotent(self):
        """Should tolerate repeated shutdown calls"""
        limiter = RateLimiter(5)
        limiter.shutdown()
        limiter.shutdown()
        assert limiter.closed

    def test_acquire_after_shutdown_raises(self):
        """Should raise instead of blocking forever"""
        limiter = RateLimiter(5)
        limiter.shutdown()

        with pytest.raises(RateLimiterClosedError):
            limiter.acquire()

    def test_shutdown_releases_blocked_waiters(self):
        """Should wake threads waiting for a permit"""
        limiter = RateLimiter(1)
        limiter.acquire()
        errors = []

        def waiter():
            try:
                limiter.acquire()
            except RateLimiterClosedError as e:
                errors.append(e)

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.1)
        limiter.shutdown()
        thread.join(timeout=2)

        assert not thread.is_alive()
        assert len(errors) == 1

    def test_context_manager_shuts_down(self):
        """Should shut down on exit"""
        with RateLimiter(5) as limiter:
            limiter.acquire()
        assert limiter.closed
