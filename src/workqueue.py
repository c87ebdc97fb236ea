"""Work queue of Ingress keys with per-key serialization and backoff."""

import logging
import threading
from collections import deque
from collections.abc import Callable

from metrics import WORKQUEUE_DEPTH, WORKQUEUE_RETRIES

logger = logging.getLogger(__name__)


class WorkQueue:
    """FIFO queue of object keys.

    - A key waiting in the queue is never queued twice.
    - A key being processed is never handed to a second worker; if it is
      added meanwhile, it is queued again once ``done`` is called.
    - ``add_rate_limited`` re-adds a key after a per-key exponential delay.
    """

    def __init__(self, base_delay: float = 1.0, max_delay: float = 300.0) -> None:
        self._cond = threading.Condition()
        self._queue: deque[str] = deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._failures: dict[str, int] = {}
        self._timers: set[threading.Timer] = set()
        self._shutting_down = False
        self._base_delay = base_delay
        self._max_delay = max_delay

    def add(self, key: str) -> None:
        """Queue a key unless it is already pending."""
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            WORKQUEUE_DEPTH.set(len(self._queue))
            self._cond.notify()

    def get(self) -> str | None:
        """Block until a key is available. Returns None after shutdown."""
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()
            if not self._queue:
                return None
            key = self._queue.popleft()
            self._dirty.discard(key)
            self._processing.add(key)
            WORKQUEUE_DEPTH.set(len(self._queue))
            return key

    def done(self, key: str) -> None:
        """Mark a key as processed, re-queueing it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                WORKQUEUE_DEPTH.set(len(self._queue))
                self._cond.notify()

    def backoff(self, key: str) -> float:
        """Delay before the next retry of a key."""
        with self._cond:
            failures = self._failures.get(key, 0)
        return min(self._base_delay * (2**failures), self._max_delay)

    def add_rate_limited(self, key: str) -> float:
        """Re-add a key after its backoff delay. Returns the delay."""
        delay = self.backoff(key)
        with self._cond:
            if self._shutting_down:
                return delay
            self._failures[key] = self._failures.get(key, 0) + 1

            timer = threading.Timer(delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers.add(timer)
        WORKQUEUE_RETRIES.inc()
        timer.start()
        return delay

    def _fire(self, key: str) -> None:
        with self._cond:
            self._timers = {t for t in self._timers if t.is_alive()}
        self.add(key)

    def forget(self, key: str) -> None:
        """Reset the failure count of a key."""
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def shutdown(self) -> None:
        """Stop handing out keys and cancel pending delayed adds."""
        with self._cond:
            self._shutting_down = True
            timers = list(self._timers)
            self._timers.clear()
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()


class WorkerPool:
    """Runs ``reconcile(key)`` for queued keys on N threads."""

    def __init__(
        self,
        queue: WorkQueue,
        reconcile: Callable[[str], None],
        workers: int = 4,
    ) -> None:
        self._queue = queue
        self._reconcile = reconcile
        self._workers = workers
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._run, name=f"reconcile-worker-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Started %d reconcile workers", self._workers)

    def process_next(self) -> bool:
        """Process one key. Returns False once the queue is shut down."""
        key = self._queue.get()
        if key is None:
            return False
        try:
            self._reconcile(key)
        except Exception as e:
            delay = self._queue.add_rate_limited(key)
            logger.error("Reconcile of %s failed, retrying in %.0fs: %s", key, delay, e)
        else:
            self._queue.forget(key)
        finally:
            self._queue.done(key)
        return True

    def _run(self) -> None:
        while self.process_next():
            pass

    def stop(self, timeout: float = 10.0) -> None:
        self._queue.shutdown()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
