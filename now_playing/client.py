"""
Reconnecting WebSocket client for the now-playing push channel.

Keeps one connection to the server open, reconnecting with exponential
backoff when it drops, and turns server frames into events:

    connect, disconnect, reconnect, reconnect_attempt, reconnect_failed,
    connect_error, statusUpdate

Handlers may be plain functions or coroutines.
"""
import asyncio
import inspect
import json
import random
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from config import CLIENT, NOW_PLAYING
from logging_config import get_logger

logger = get_logger(__name__)

# Events that say whether updates are flowing right now
_LIVE_EVENTS = {"connect": True, "reconnect": True,
                "disconnect": False, "reconnect_attempt": False, "reconnect_failed": False}


class ReconnectingClient:
    def __init__(
        self,
        url: str = CLIENT["url"],
        reconnection_attempts: int = CLIENT["reconnection_attempts"],
        reconnection_delay: float = CLIENT["reconnection_delay"],
        reconnection_delay_max: float = CLIENT["reconnection_delay_max"],
        randomization_factor: float = CLIENT["randomization_factor"],
        timeout: float = CLIENT["timeout"],
        ping_interval: float = NOW_PLAYING["heartbeat"]["ping_interval"],
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.url = url
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self.reconnection_delay_max = reconnection_delay_max
        self.randomization_factor = randomization_factor
        self.timeout = timeout
        self.ping_interval = ping_interval
        self._connect = connect

        self.session_id: Optional[str] = None
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)
        self._ws = None
        self._live = False
        self._closing = False

    @property
    def live(self) -> bool:
        return self._live

    def on(self, event: str, handler: Optional[Callable] = None):
        """Register a handler. Usable directly or as a decorator."""
        if handler is None:
            def decorator(func):
                self._handlers[event].append(func)
                return func
            return decorator
        self._handlers[event].append(handler)
        return handler

    async def _emit(self, event: str, *args: Any) -> None:
        if event in _LIVE_EVENTS:
            self._live = _LIVE_EVENTS[event]

        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler for '{event}' failed: {e}", exc_info=True)

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay before reconnection attempt `attempt` (1-based).

        base * 2^(attempt-1), jittered by +/- randomization_factor, capped at reconnection_delay_max.
        """
        delay = self.reconnection_delay * (2 ** (attempt - 1))
        if self.randomization_factor:
            deviation = random.random() * self.randomization_factor * delay
            delay = delay - deviation if random.random() < 0.5 else delay + deviation
        return min(delay, self.reconnection_delay_max)

    # --- Connection loop ---

    async def run(self) -> None:
        """Connect and keep reconnecting until close() or the attempts run out"""
        attempt = 0
        reconnecting = False

        while not self._closing:
            if reconnecting:
                attempt += 1
                if attempt > self.reconnection_attempts:
                    logger.error(f"Giving up on {self.url} after {self.reconnection_attempts} attempts")
                    await self._emit("reconnect_failed")
                    return

                delay = self.backoff_delay(attempt)
                logger.info(f"Reconnecting to {self.url} in {delay:.1f}s (attempt {attempt}/{self.reconnection_attempts})")
                await asyncio.sleep(delay)
                if self._closing:
                    return
                await self._emit("reconnect_attempt", attempt)

            try:
                self._ws = await asyncio.wait_for(
                    self._connect(
                        self.url,
                        open_timeout=self.timeout,
                        ping_interval=self.ping_interval,
                        ping_timeout=NOW_PLAYING["heartbeat"]["ping_timeout"],
                    ),
                    timeout=self.timeout,
                )
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"Could not connect to {self.url}: {e or type(e).__name__}")
                await self._emit("connect_error", e)
                reconnecting = True
                continue

            logger.info(f"Connected to {self.url}")
            await self._emit("connect")
            if attempt:
                await self._emit("reconnect", attempt)
            attempt = 0

            reason = await self._listen()

            self._ws = None
            self.session_id = None
            logger.info(f"Disconnected from {self.url}: {reason}")
            await self._emit("disconnect", reason)
            reconnecting = True

    async def _listen(self) -> str:
        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            async for frame in self._ws:
                await self._handle_frame(frame)
            return "io server disconnect" if not self._closing else "io client disconnect"
        except ConnectionClosed as e:
            return "io client disconnect" if self._closing else f"transport close ({e})"
        except OSError as e:
            return f"transport error ({e})"
        finally:
            heartbeat.cancel()

    async def _handle_frame(self, frame: Any) -> None:
        try:
            message = json.loads(frame)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring malformed frame: {frame!r}")
            return
        if not isinstance(message, dict):
            return

        msg_type = message.get("type")
        if msg_type == "statusUpdate":
            await self._emit("statusUpdate", message.get("data") or {})
        elif msg_type == "connected":
            self.session_id = message.get("session_id")
            logger.debug(f"Session id {self.session_id}")
        elif msg_type == "pong":
            logger.debug("pong")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await self._send({"type": "ping"})

    # --- Outgoing ---

    async def _send(self, message: Dict[str, Any]) -> bool:
        # No queueing: a message sent while disconnected is dropped
        if self._ws is None or not self._live:
            return False
        try:
            await self._ws.send(json.dumps(message))
            return True
        except (OSError, WebSocketException) as e:
            logger.warning(f"Failed to send {message.get('type')}: {e}")
            return False

    async def request_refresh(self) -> bool:
        return await self._send({"type": "requestRefresh"})

    async def start_auto_refresh(self) -> bool:
        return await self._send({"type": "startAutoRefresh"})

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
