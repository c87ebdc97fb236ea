"""Tests for Pangolin API call throttling."""

import threading
import time

from ratelimit import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter class."""

    def test_first_call_does_not_wait(self):
        limiter = RateLimiter(max_concurrent=1, requests_per_second=1)

        start = time.monotonic()
        with limiter.acquire():
            pass
        assert time.monotonic() - start < 0.5

    def test_caps_in_flight_calls(self):
        limiter = RateLimiter(max_concurrent=2, requests_per_second=0)
        in_flight = 0
        peak = 0
        lock = threading.Lock()

        def call():
            nonlocal in_flight, peak
            with limiter.acquire():
                with lock:
                    in_flight += 1
                    peak = max(peak, in_flight)
                time.sleep(0.05)
                with lock:
                    in_flight -= 1

        threads = [threading.Thread(target=call) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert peak == 2

    def test_spaces_out_calls(self):
        # 20 requests per second leaves 50ms between call slots
        limiter = RateLimiter(max_concurrent=5, requests_per_second=20)

        start = time.monotonic()
        for _ in range(4):
            with limiter.acquire():
                pass

        assert time.monotonic() - start >= 0.14

    def test_zero_rate_disables_spacing(self):
        limiter = RateLimiter(max_concurrent=5, requests_per_second=0)

        start = time.monotonic()
        for _ in range(50):
            with limiter.acquire():
                pass

        assert time.monotonic() - start < 0.5

    def test_slot_released_on_error(self):
        limiter = RateLimiter(max_concurrent=1, requests_per_second=0)

        try:
            with limiter.acquire():
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        acquired = threading.Event()

        def call():
            with limiter.acquire():
                acquired.set()

        thread = threading.Thread(target=call)
        thread.start()
        thread.join(timeout=1)
        assert acquired.is_set()

    def test_repr(self):
        limiter = RateLimiter(max_concurrent=5, requests_per_second=50)

        assert repr(limiter) == "RateLimiter(max_concurrent=5, requests_per_second=50)"
