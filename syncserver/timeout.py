"""
Idle-timeout scheduling for peer connections.

A single TimeoutScheduler thread owns the pending timeout actions of every
session. Each session holds one TimeoutSupervisor, which keeps at most one
action pending and replaces it atomically with respect to it firing.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimeoutHandle:
    """A scheduled action that can be cancelled until it starts running."""

    def __init__(self, scheduler: "TimeoutScheduler", deadline: float, action: Callable[[], None]):
        self._scheduler = scheduler
        self.deadline = deadline
        self.action = action
        self.cancelled = False
        self.started = False

    def cancel(self) -> bool:
        """
        Cancel the action.

        Returns:
            True if the action will not run, False if it already started
        """
        return self._scheduler._cancel(self)


class TimeoutScheduler:
    """
    Runs delayed actions on one background thread.

    Thread-safe: schedule() and cancel() may be called from any worker thread.
    Actions run on the scheduler thread and must not block for long.
    """

    def __init__(self, name: str = "timeout-scheduler"):
        self._name = name
        self._condition = threading.Condition()
        self._queue: List[Tuple[float, int, TimeoutHandle]] = []
        self._counter = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the scheduler thread."""
        with self._condition:
            if self._running:
                logger.warning("Timeout scheduler already running")
                return
            self._running = True

        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.debug("Timeout scheduler started")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the scheduler thread, discarding pending actions."""
        with self._condition:
            if not self._running:
                return
            self._running = False
            for _, _, handle in self._queue:
                handle.cancelled = True
            self._queue.clear()
            self._condition.notify_all()

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        logger.debug("Timeout scheduler stopped")

    def schedule(self, delay_ms: int, action: Callable[[], None]) -> TimeoutHandle:
        """
        Schedule action to run once after delay_ms.

        Raises:
            RuntimeError: If the scheduler is not running
        """
        deadline = time.monotonic() + delay_ms / 1000.0
        with self._condition:
            if not self._running:
                raise RuntimeError("Timeout scheduler is not running")
            handle = TimeoutHandle(self, deadline, action)
            heapq.heappush(self._queue, (deadline, next(self._counter), handle))
            self._condition.notify_all()
        return handle

    def pending(self) -> int:
        """Number of scheduled actions that are neither cancelled nor started."""
        with self._condition:
            return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def _cancel(self, handle: TimeoutHandle) -> bool:
        with self._condition:
            if handle.started:
                return False
            handle.cancelled = True
            self._condition.notify_all()
            return True

    def _purge(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)

    def _run(self) -> None:
        while True:
            with self._condition:
                while True:
                    if not self._running:
                        return
                    self._purge()
                    if not self._queue:
                        self._condition.wait()
                        continue
                    delay = self._queue[0][0] - time.monotonic()
                    if delay <= 0:
                        _, _, handle = heapq.heappop(self._queue)
                        handle.started = True
                        break
                    self._condition.wait(delay)

            try:
                handle.action()
            except Exception as e:
                logger.error(f"Timeout action failed: {e}", exc_info=True)


class TimeoutSupervisor:
    """
    Keeps one idle-timeout action pending for a single session.

    set() replaces the pending action; an action superseded while it was
    already starting sees a stale generation and does nothing.
    """

    def __init__(
        self,
        scheduler: TimeoutScheduler,
        on_expire: Callable[[], None],
        session_logger: Optional[logging.Logger] = None
    ):
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._logger = session_logger or logger
        self._lock = threading.Lock()
        self._handle: Optional[TimeoutHandle] = None
        self._generation = 0
        self._closed = False
        self.expired = False
        self.duration_ms: Optional[int] = None

    def set(self, duration_ms: int) -> None:
        """Cancel any pending action and schedule a new one after duration_ms."""
        with self._lock:
            if self._closed:
                return
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            self._handle = self._scheduler.schedule(duration_ms, lambda: self._fire(generation))
            self.duration_ms = duration_ms

        self._logger.debug(f"Reset timeout with a timeout of: {duration_ms} ms")

    def clear(self) -> None:
        """Cancel the pending action, if any."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self.duration_ms = None

    def close(self) -> None:
        """Cancel the pending action and refuse further set() calls."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._closed = True
            self.duration_ms = None

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._generation:
                return
            self._handle = None
            self.expired = True

        self._on_expire()
