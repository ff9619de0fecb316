"""Cancellable repeating timer running on a daemon thread."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls *callback* every *interval_s* seconds until :meth:`cancel`.

    The callback runs on the timer thread; callers that share state with
    other threads must serialise it themselves (the engine takes its lock).
    ``cancel()`` returns only after the thread has finished, unless it is
    called from inside the callback or with ``wait=False``.
    """

    def __init__(self, interval_s: float, callback: Callable[[], None], name: str = "RepeatingTimer") -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self._callback = callback
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self._name)
        self._thread.start()
        logger.debug("%s started (every %.2f s)", self._name, self.interval_s)

    def cancel(self, wait: bool = True) -> None:
        """Stop the timer.  With *wait*, block until the thread has exited."""
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if wait and thread and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        logger.debug("%s cancelled", self._name)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _run(self) -> None:
        # wait() returns True once cancel() sets the event
        while not self._stop_event.wait(self.interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("%s callback failed", self._name)
