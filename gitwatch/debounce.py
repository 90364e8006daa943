"""
Debounce Layer - Coalesce bursts of change notifications.

Every notification restarts a single settle timer; the settled callback
runs only once the watched tree has been quiet for the whole delay.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SLEEP_TIME = 2.0


class Debouncer:
    """Idle detection over a stream of change notifications.

    States are Idle (no timer) and Pending (one armed timer). ``notify``
    moves to Pending and re-arms; natural expiry returns to Idle and calls
    ``on_settled`` exactly once. The timer handle is only touched under
    ``self.lock``.
    """

    def __init__(self, on_settled: Callable[[], None], sleep_time: float = DEFAULT_SLEEP_TIME):
        self.on_settled = on_settled
        self.sleep_time = sleep_time
        self.lock = threading.Lock()
        self.idle_timer: Optional[threading.Timer] = None
        self.generation = 0
        self.notifications = 0
        self.settles = 0

    @property
    def pending(self) -> bool:
        with self.lock:
            return self.idle_timer is not None

    def notify(self, _notification: object = None) -> None:
        """Record one change and restart the settle window."""
        with self.lock:
            self.notifications += 1

            # Cancelling a timer that already expired is a no-op.
            if self.idle_timer is not None:
                self.idle_timer.cancel()

            self.generation += 1
            self.idle_timer = threading.Timer(
                self.sleep_time,
                self._on_idle_timeout,
                args=(self.generation,),
            )
            self.idle_timer.daemon = True
            self.idle_timer.start()

    def _on_idle_timeout(self, generation: int) -> None:
        with self.lock:
            # Superseded while expiring: a newer timer owns the window.
            if generation != self.generation or self.idle_timer is None:
                return
            self.idle_timer = None
            self.settles += 1

        logger.debug("quiet for %ss, settling", self.sleep_time)
        try:
            self.on_settled()
        except Exception:
            logger.exception("settle handler failed")

    def cancel(self) -> None:
        """Drop the pending timer, if any, without firing it."""
        with self.lock:
            if self.idle_timer is not None:
                self.idle_timer.cancel()
                self.idle_timer = None
