import asyncio
import json

from quart import Quart, jsonify, request, websocket

from config import NOW_PLAYING
from logging_config import get_logger
from now_playing.aggregator import NowPlayingAggregator
from now_playing.errors import ProviderUnavailable, RateLimited
from now_playing.models import AggregationResult, Status
from now_playing.rate_limiter import RateLimiter
from now_playing.sessions import PushServer

logger = get_logger(__name__)

app = Quart(__name__)
app.config['SERVER_NAME'] = None

# --- Helper Functions ---

def get_push_server() -> PushServer:
    """The app's PushServer, built from config on first use"""
    push_server = app.extensions.get("push_server")
    if push_server is None:
        push_server = PushServer(NowPlayingAggregator.from_config())
        app.extensions["push_server"] = push_server
    return push_server


def install_push_server(push_server: PushServer) -> None:
    """Swap in a PushServer (tests, alternative wiring)"""
    app.extensions["push_server"] = push_server


def get_status_limiter() -> RateLimiter:
    """Separate per-address limiter for the HTTP status route"""
    limiter = app.extensions.get("status_limiter")
    if limiter is None:
        limiter = RateLimiter()
        app.extensions["status_limiter"] = limiter
    return limiter


@app.after_serving
async def close_providers() -> None:
    push_server = app.extensions.get("push_server")
    if push_server is None:
        return
    aggregator = push_server.aggregator
    for provider in (aggregator.history, aggregator.enrichment, aggregator.artwork, aggregator.catalog):
        close = getattr(provider, "close", None)
        if close is not None:
            close()

# --- HTTP Routes ---

@app.route("/api/now-playing")
async def now_playing_raw():
    """Raw ListenBrainz playing-now document"""
    history = get_push_server().aggregator.history
    try:
        data = await history.get_playing_now()
    except ProviderUnavailable as e:
        logger.error(f"Error fetching now playing: {e}")
        return jsonify({"error": "Failed to fetch now playing data"}), 500
    return jsonify(data)


@app.route("/api/now-playing/status")
async def now_playing_status():
    """One-shot aggregation for clients that can't hold a WebSocket open"""
    client = request.remote_addr or "unknown"
    if not get_status_limiter().admit(client):
        error = RateLimited(client)
        return jsonify(AggregationResult.error(str(error)).to_payload()), 429

    result = await get_push_server().aggregator.resolve()
    if result.status == Status.ERROR:
        return jsonify(result.to_payload()), 502
    return jsonify(result.to_payload())

# --- WebSocket ---

@app.websocket("/ws/now-playing")
async def now_playing_websocket():
    """
    Push channel for now-playing updates.

    Protocol (JSON text frames):
        Client -> server:
            - {"type": "requestRefresh"}
            - {"type": "startAutoRefresh"}
            - {"type": "ping"}
        Server -> client:
            - {"type": "connected", "session_id": str}
            - {"type": "statusUpdate", "data": {...}}
            - {"type": "pong"}

    A client that sends nothing (not even a ping) for the heartbeat timeout is
    disconnected.
    """
    push_server = get_push_server()
    timeout = NOW_PLAYING["heartbeat"]["ping_timeout"]

    async with push_server.session(websocket.send_json) as session:
        await websocket.send_json({"type": "connected", "session_id": session.connection_id})

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.info(f"No heartbeat from {session.connection_id} in {timeout:g}s, closing")
                await websocket.close(1000, "ping timeout")
                return

            if not isinstance(data, str):
                continue
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Malformed frame from {session.connection_id} ignored")
                continue

            await push_server.handle_message(session.connection_id, message)
