import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class RefreshLoop:
    """
    Re-run a render callable at a fixed interval while its view is active.

    The callable is expected to recompute everything it shows from scratch
    (now/next buckets are a pure function of the clock), so the loop keeps
    no state besides the stop flag. It stops as soon as `is_active()`
    returns False or `cancel()` is called.
    """

    def __init__(self, render: Callable[[], None], interval: float, is_active: Callable[[], bool] = lambda: True):
        self.render = render
        self.interval = interval
        self.is_active = is_active
        self._stopped = threading.Event()
        self.runs = 0

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def run(self) -> None:
        """Render now, then every `interval` seconds until cancelled or inactive."""
        while not self._stopped.is_set():
            if not self.is_active():
                logger.debug("View no longer active, stopping refresh")
                break
            self.render()
            self.runs += 1
            if self._stopped.wait(self.interval):
                break
