"""
Periodic task scheduling with explicit cancellation.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List

logger = logging.getLogger(__name__)


class ScheduledTask(ABC):
    """Handle for a repeating callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop future runs. Safe to call more than once."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    @abstractmethod
    def every(self, interval_s: float, callback: Callable[[], None]) -> ScheduledTask:
        """Run callback every interval_s seconds until the task is cancelled."""


class _ThreadTask(ScheduledTask):
    def __init__(self, interval_s: float, callback: Callable[[], None], name: str):
        self.interval_s = interval_s
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self):
        self._thread.start()

    def _run(self):
        while not self._stop.wait(self.interval_s):
            try:
                self.callback()
            except Exception:
                logger.exception(f"Scheduled task {self._thread.name} failed")

    def cancel(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=self.interval_s + 1)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()


class ThreadScheduler(Scheduler):
    """Runs each task on its own daemon thread."""

    def every(self, interval_s: float, callback: Callable[[], None]) -> ScheduledTask:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        name = getattr(callback, "__name__", "task")
        task = _ThreadTask(interval_s, callback, name=f"vibelink-{name}")
        task.start()
        return task


class _ManualTask(ScheduledTask):
    def __init__(self, interval_s: float, callback: Callable[[], None], start_s: float):
        self.interval_s = interval_s
        self.callback = callback
        self.next_run_s = start_s + interval_s
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler driven by advance().

    Nothing runs on its own; tests move time forward explicitly.
    """

    def __init__(self):
        self.now_s = 0.0
        self.tasks: List[_ManualTask] = []

    def every(self, interval_s: float, callback: Callable[[], None]) -> ScheduledTask:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        task = _ManualTask(interval_s, callback, self.now_s)
        self.tasks.append(task)
        return task

    def advance(self, seconds: float) -> int:
        """Move time forward, running every tick that falls due. Returns runs made."""
        target = self.now_s + seconds
        runs = 0
        while True:
            due = [t for t in self.tasks if not t.cancelled and t.next_run_s <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.next_run_s)
            self.now_s = task.next_run_s
            task.next_run_s += task.interval_s
            task.callback()
            runs += 1
        self.now_s = target
        return runs
