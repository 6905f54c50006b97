"""
Short-lived result cache with in-flight request coalescing.

One ResultCache belongs to one aggregator. It holds at most one CacheEntry and
at most one InFlightRequest per aggregation key. Everything here runs on the
event loop thread and never awaits between a check and the matching update.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional

from config import NOW_PLAYING
from logging_config import get_logger
from .models import AggregationResult, Status

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    result: AggregationResult
    captured_at: float


class InFlightRequest:
    """
    A pipeline run in progress that other callers can attach to.

    Every state published after a subscriber attaches is delivered to it, so
    all attached callers receive the identical terminal result object.
    """

    def __init__(self, key: str):
        self.key = key
        self._subscribers: List[asyncio.Queue] = []
        self._result: Optional[AggregationResult] = None

    @property
    def done(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[AggregationResult]:
        return self._result

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        if self._result is not None:
            queue.put_nowait(self._result)
        else:
            self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, result: AggregationResult) -> None:
        if self._result is not None:
            logger.warning(f"Ignoring {result.status.value} update for '{self.key}': run already finished")
            return
        for queue in list(self._subscribers):
            queue.put_nowait(result)
        if result.is_terminal:
            self._result = result
            self._subscribers.clear()

    async def updates(self, queue: asyncio.Queue) -> AsyncIterator[AggregationResult]:
        """Yield states from a subscribed queue up to and including the terminal one"""
        try:
            while True:
                result = await queue.get()
                yield result
                if result.is_terminal:
                    return
        finally:
            self.unsubscribe(queue)


class ResultCache:
    """TTL cache of terminal results plus the in-flight slot per key"""

    def __init__(self, ttl: float = NOW_PLAYING["cache_ttl"], clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, InFlightRequest] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.captured_at >= self.ttl:
            # Expired entries are dropped on read
            del self._entries[key]
            logger.debug(f"Cache entry for '{key}' expired")
            return None
        return entry

    def set(self, key: str, result: AggregationResult) -> bool:
        """Store a successful result, replacing any previous entry. Errors are never cached."""
        if result.status != Status.COMPLETE:
            logger.debug(f"Refusing to cache {result.status.value} result for '{key}'")
            return False
        self._entries[key] = CacheEntry(result=result, captured_at=self._clock())
        return True

    # --- In-flight slot ---

    def get_in_flight(self, key: str) -> Optional[InFlightRequest]:
        return self._in_flight.get(key)

    def register_in_flight(self, key: str, request: InFlightRequest) -> None:
        existing = self._in_flight.get(key)
        if existing is not None and not existing.done:
            raise RuntimeError(f"A run for '{key}' is already in flight")
        self._in_flight[key] = request

    def clear_in_flight(self, key: str, request: InFlightRequest) -> None:
        # Only clear our own slot; a newer run may have replaced it
        if self._in_flight.get(key) is request:
            del self._in_flight[key]
