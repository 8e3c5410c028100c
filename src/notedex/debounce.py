"""Restartable timer used to collapse bursts of index saves."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Run *action* once, *delay* seconds after the last :meth:`schedule` call.

    Every call to :meth:`schedule` cancels the pending timer and starts a new
    one, so a burst of calls results in a single run.  The action reads
    whatever state it needs when it fires, not when it was scheduled.
    """

    def __init__(
        self,
        delay: float,
        action: Callable[[], None],
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.delay = delay
        self._action = action
        self._on_error = on_error
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            # A newer schedule() replaced us between expiry and here
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        try:
            self._action()
        except Exception as exc:  # noqa: BLE001
            if self._on_error is None:
                logger.exception("Debounced action failed")
            else:
                self._on_error(exc)
