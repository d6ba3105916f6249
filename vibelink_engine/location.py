"""
Friend Location Snapshots
=========================

Holds the visible-friends list shared by the feed ranker and the
clusterer. Each refresh builds a new immutable tuple and swaps it in,
so readers see either the old or the new snapshot, never a mix.
"""

import logging
import threading
from typing import Callable, Iterable, Optional, Tuple

from .config import FRIEND_REFRESH_INTERVAL_S
from .models import FriendPresence
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], Iterable[FriendPresence]]


class FriendPresenceFeed:
    """Periodically refreshed snapshot of visible friend positions."""

    def __init__(
        self,
        provider: LocationProvider,
        scheduler: Scheduler,
        interval_s: float = FRIEND_REFRESH_INTERVAL_S,
    ):
        """
        Args:
            provider: Returns the privacy-filtered friend positions
            scheduler: Drives the periodic refresh
            interval_s: Seconds between refreshes
        """
        self.provider = provider
        self.scheduler = scheduler
        self.interval_s = interval_s
        self._snapshot: Tuple[FriendPresence, ...] = ()
        self._swap_lock = threading.Lock()
        self._task: Optional[ScheduledTask] = None

    def snapshot(self) -> Tuple[FriendPresence, ...]:
        return self._snapshot

    def refresh(self) -> Tuple[FriendPresence, ...]:
        """Pull a fresh list from the provider and publish it."""
        fresh = tuple(self.provider())
        with self._swap_lock:
            self._snapshot = fresh
        logger.debug(f"Friend snapshot refreshed: {len(fresh)} visible")
        return fresh

    def _tick(self):
        try:
            self.refresh()
        except Exception as e:
            # Keep serving the previous snapshot until the next tick
            logger.warning(f"Friend location refresh failed: {e}")

    def start(self) -> ScheduledTask:
        """Load once, then refresh on every tick. Idempotent while running."""
        if self._task is not None and not self._task.cancelled:
            return self._task
        self.refresh()
        self._task = self.scheduler.every(self.interval_s, self._tick)
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.cancelled
