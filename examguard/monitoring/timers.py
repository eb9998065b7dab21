import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TickerFactory = Callable[[str, float, Callable[[], None]], Ticker]


class PeriodicTask:
    """Calls ``fn`` every ``interval`` seconds on a daemon thread.

    The wait happens on an ``Event``, so ``cancel()`` wakes the thread
    immediately instead of letting it sleep out the interval. Exceptions from
    ``fn`` are logged and the loop keeps going.
    """

    def __init__(self, name: str, interval: float, fn: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self._fn = fn
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._fn()
            except Exception:
                logger.exception(f"Periodic task {self.name} failed")


def thread_ticker(name: str, interval: float, fn: Callable[[], None]) -> Ticker:
    return PeriodicTask(name, interval, fn)
