"""
Per-connection session management for the now-playing push channel.

Each connected client gets a Session. Refresh requests are rate limited per
connection and their results are forwarded to that connection only; there is
no broadcast. A session may also run one auto-refresh timer.
"""
import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from config import NOW_PLAYING
from logging_config import get_logger
from .aggregator import NOW_PLAYING_KEY, NowPlayingAggregator
from .errors import RateLimited
from .models import AggregationResult
from .rate_limiter import RateLimiter

logger = get_logger(__name__)

SendFunc = Callable[[Dict[str, Any]], Awaitable[None]]


@dataclass
class Session:
    connection_id: str
    send: SendFunc
    tasks: Set[asyncio.Task] = field(default_factory=set)


def status_event(result: AggregationResult) -> Dict[str, Any]:
    return {"type": "statusUpdate", "data": result.to_payload()}


class PushServer:
    def __init__(
        self,
        aggregator: NowPlayingAggregator,
        rate_limiter: Optional[RateLimiter] = None,
        auto_refresh_interval: float = NOW_PLAYING["auto_refresh_interval"],
        key: str = NOW_PLAYING_KEY,
    ):
        self.aggregator = aggregator
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.auto_refresh_interval = auto_refresh_interval
        self.key = key
        self.sessions: Dict[str, Session] = {}
        # connection_id -> auto-refresh timer task
        self._timers: Dict[str, asyncio.Task] = {}

    # --- Lifecycle ---

    def connect(self, connection_id: str, send: SendFunc) -> Session:
        if connection_id in self.sessions:
            raise ValueError(f"Session {connection_id} already connected")
        session = Session(connection_id=connection_id, send=send)
        self.sessions[connection_id] = session
        logger.info(f"Client connected: {connection_id} ({len(self.sessions)} active)")
        return session

    async def disconnect(self, connection_id: str) -> None:
        """
        Tear down a session: stop its timer, cancel its deliveries, forget its rate window.
        Aggregations already running keep going for any other attached caller.
        """
        session = self.sessions.pop(connection_id, None)
        self._stop_auto_refresh(connection_id)
        self.rate_limiter.discard(connection_id)
        if session is None:
            return

        pending = [task for task in session.tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        session.tasks.clear()
        logger.info(f"Client disconnected: {connection_id} ({len(self.sessions)} active)")

    @asynccontextmanager
    async def session(self, send: SendFunc, connection_id: Optional[str] = None) -> AsyncIterator[Session]:
        """Connected session for the duration of the block, always disconnected on exit"""
        connection_id = connection_id or uuid.uuid4().hex
        session = self.connect(connection_id, send)
        try:
            yield session
        finally:
            await self.disconnect(connection_id)

    # --- Requests ---

    async def request_refresh(self, connection_id: str) -> Optional[asyncio.Task]:
        """
        Client-initiated refresh.

        Returns:
            The delivery task, or None if the session is unknown or rate limited
        """
        session = self.sessions.get(connection_id)
        if session is None:
            logger.debug(f"Refresh for unknown session {connection_id} ignored")
            return None

        if not self.rate_limiter.admit(connection_id):
            error = RateLimited(connection_id)
            logger.info(f"Rate limited {connection_id}")
            await self._send(session, status_event(AggregationResult.error(str(error))))
            return None

        return self._spawn_delivery(session)

    def start_auto_refresh(self, connection_id: str) -> bool:
        """(Re)start the session's timer. Ticks are server-initiated and not rate limited."""
        session = self.sessions.get(connection_id)
        if session is None:
            return False

        action = "Restarting" if self.has_auto_refresh(connection_id) else "Starting"
        self._stop_auto_refresh(connection_id)
        self._timers[connection_id] = asyncio.create_task(
            self._auto_refresh_loop(session), name=f"auto-refresh:{connection_id}"
        )
        logger.debug(f"{action} auto-refresh every {self.auto_refresh_interval:g}s for {connection_id}")
        return True

    def _stop_auto_refresh(self, connection_id: str) -> bool:
        timer = self._timers.pop(connection_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def has_auto_refresh(self, connection_id: str) -> bool:
        timer = self._timers.get(connection_id)
        return timer is not None and not timer.done()

    async def handle_message(self, connection_id: str, message: Dict[str, Any]) -> None:
        """Dispatch one decoded client message"""
        msg_type = message.get("type") if isinstance(message, dict) else None

        if msg_type == "requestRefresh":
            await self.request_refresh(connection_id)
        elif msg_type == "startAutoRefresh":
            self.start_auto_refresh(connection_id)
        elif msg_type == "ping":
            session = self.sessions.get(connection_id)
            if session is not None:
                await self._send(session, {"type": "pong"})
        else:
            logger.debug(f"Ignoring unknown message type from {connection_id}: {msg_type!r}")

    # --- Delivery ---

    def _spawn_delivery(self, session: Session) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(session), name=f"deliver:{session.connection_id}")
        session.tasks.add(task)
        task.add_done_callback(session.tasks.discard)
        return task

    async def _deliver(self, session: Session) -> None:
        """Forward every state of one aggregation run to this session"""
        stream = self.aggregator.run(self.key)
        try:
            async for result in stream:
                if not await self._send(session, status_event(result)):
                    # Connection is gone; the run itself carries on without us
                    return
        finally:
            await stream.aclose()

    async def _auto_refresh_loop(self, session: Session) -> None:
        try:
            while True:
                await asyncio.sleep(self.auto_refresh_interval)
                await self._deliver(session)
        except asyncio.CancelledError:
            logger.debug(f"Auto-refresh stopped for {session.connection_id}")
            raise

    async def _send(self, session: Session, event: Dict[str, Any]) -> bool:
        try:
            await session.send(event)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Failed to send {event.get('type')} to {session.connection_id}: {e}")
            return False
