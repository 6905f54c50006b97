"""Per-connection request admission (fixed window with reset)"""
import time
from dataclasses import dataclass
from typing import Callable, Dict

from config import NOW_PLAYING
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RateWindow:
    count: int
    reset_at: float


class RateLimiter:
    """
    Admits at most `max_requests` per `window` seconds for each connection.

    The first request opens a window with count 1. Requests inside the window
    increment the count and are denied once it would exceed the limit. The
    first request at or after the window end starts a fresh window.
    """

    def __init__(
        self,
        max_requests: int = NOW_PLAYING["rate_limit"]["max_requests"],
        window: float = NOW_PLAYING["rate_limit"]["window"],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}

    def admit(self, connection_id: str) -> bool:
        now = self._clock()
        current = self._windows.get(connection_id)

        if current is None or now >= current.reset_at:
            self._windows[connection_id] = RateWindow(count=1, reset_at=now + self.window)
            return True

        if current.count >= self.max_requests:
            logger.debug(f"Rate limit hit for {connection_id} ({current.count}/{self.max_requests})")
            return False

        current.count += 1
        return True

    def discard(self, connection_id: str) -> None:
        """Forget a connection's window (called on disconnect)"""
        self._windows.pop(connection_id, None)
