"""Tests for the work queue and worker pool."""

import threading
import time

import pytest

from workqueue import WorkerPool, WorkQueue


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestWorkQueue:
    """Tests for WorkQueue class."""

    def test_fifo(self):
        queue = WorkQueue()
        queue.add("a")
        queue.add("b")

        assert queue.get() == "a"
        assert queue.get() == "b"

    def test_pending_key_is_deduplicated(self):
        queue = WorkQueue()
        queue.add("a")
        queue.add("a")

        assert len(queue) == 1

    def test_key_in_progress_is_not_handed_out_twice(self):
        queue = WorkQueue()
        queue.add("a")
        key = queue.get()

        queue.add("a")
        assert len(queue) == 0

        queue.done(key)
        assert len(queue) == 1
        assert queue.get() == "a"

    def test_done_without_new_add_does_not_requeue(self):
        queue = WorkQueue()
        queue.add("a")
        queue.done(queue.get())

        assert len(queue) == 0

    def test_backoff_grows_and_caps(self):
        queue = WorkQueue(base_delay=1.0, max_delay=5.0)

        delays = []
        for _ in range(5):
            delays.append(queue.backoff("a"))
            queue._failures["a"] = queue._failures.get("a", 0) + 1

        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_rate_limited_add(self):
        queue = WorkQueue(base_delay=0.01)

        delay = queue.add_rate_limited("a")

        assert delay == pytest.approx(0.01)
        assert queue.num_requeues("a") == 1
        assert wait_for(lambda: len(queue) == 1)

    def test_forget_resets_backoff(self):
        queue = WorkQueue(base_delay=0.01)
        queue.add_rate_limited("a")
        queue.add_rate_limited("a")

        queue.forget("a")

        assert queue.num_requeues("a") == 0
        assert queue.backoff("a") == pytest.approx(0.01)

    def test_shutdown_releases_blocked_get(self):
        queue = WorkQueue()
        result = []

        thread = threading.Thread(target=lambda: result.append(queue.get()))
        thread.start()
        queue.shutdown()
        thread.join(timeout=1)

        assert result == [None]

    def test_shutdown_cancels_delayed_adds(self):
        queue = WorkQueue(base_delay=0.05)
        queue.add_rate_limited("a")
        queue.shutdown()

        time.sleep(0.1)
        queue.add("b")
        assert len(queue) == 0


class TestWorkerPool:
    """Tests for WorkerPool class."""

    def test_success_forgets_failures(self):
        queue = WorkQueue()
        queue._failures["a"] = 3
        seen = []
        pool = WorkerPool(queue, seen.append)

        queue.add("a")
        assert pool.process_next()

        assert seen == ["a"]
        assert queue.num_requeues("a") == 0

    def test_failure_is_retried_with_backoff(self):
        queue = WorkQueue(base_delay=0.01)
        attempts = []

        def reconcile(key):
            attempts.append(key)
            if len(attempts) < 3:
                raise RuntimeError("transient")

        pool = WorkerPool(queue, reconcile)
        queue.add("a")
        for _ in range(3):
            assert pool.process_next()

        assert attempts == ["a", "a", "a"]
        assert queue.num_requeues("a") == 0

    def test_same_key_never_runs_concurrently(self):
        queue = WorkQueue()
        running = set()
        overlaps = []
        lock = threading.Lock()
        calls = []

        def reconcile(key):
            with lock:
                if key in running:
                    overlaps.append(key)
                running.add(key)
                calls.append(key)
            time.sleep(0.02)
            with lock:
                running.discard(key)

        pool = WorkerPool(queue, reconcile, workers=4)
        pool.start()
        try:
            for _ in range(20):
                queue.add("a")
                queue.add("b")
                time.sleep(0.005)
            assert wait_for(lambda: len(queue) == 0 and not running)
        finally:
            pool.stop(timeout=1)

        assert overlaps == []
        assert "a" in calls and "b" in calls

    def test_stop_ends_workers(self):
        queue = WorkQueue()
        pool = WorkerPool(queue, lambda key: None, workers=2)
        pool.start()

        pool.stop(timeout=1)

        assert not pool.process_next()
