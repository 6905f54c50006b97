import asyncio
import logging
import signal
import sys
from typing import Any, Dict, Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config

from config import CLIENT, DEBUG, SERVER, VERSION
from logging_config import get_logger, setup_logging
from now_playing.tasks import background_task_count, cancel_background_tasks

logger = get_logger(__name__)


def format_status(data: Dict[str, Any]) -> str:
    """One terminal line for a statusUpdate payload"""
    status = data.get("status", "?")
    if data.get("track_name"):
        line = f"[{status}] {data.get('artist_name', '?')} - {data['track_name']}"
        if data.get("release_name"):
            line += f" ({data['release_name']})"
        if data.get("coverArt"):
            line += f"\n    art: {data['coverArt']}"
        return line
    return f"[{status}] {data.get('message', '')}"


async def cleanup() -> None:
    """Cleanup resources before exit"""
    logger.info(f"Cleaning up resources ({background_task_count()} background tasks)...")
    try:
        await asyncio.wait_for(cancel_background_tasks(), timeout=3.0)
    except asyncio.TimeoutError:
        logger.warning("Background task cancellation timed out")
    logger.info("Cleanup complete")


async def run_server(host: str, port: int, shutdown_event: asyncio.Event) -> None:
    """Run the Quart app under Hypercorn until shutdown_event is set"""
    from server import app

    config = Config()
    config.bind = [f"{host}:{port}"]
    config.use_reloader = False
    config.graceful_timeout = 2
    config.shutdown_timeout = 2
    config.debug = SERVER.get("debug", False)

    # Mute unnecessary logging
    logging.getLogger('hypercorn.error').setLevel(logging.ERROR)
    logging.getLogger('hypercorn.access').setLevel(logging.ERROR)

    logger.info(f"TrackRelay {VERSION} starting on {host}:{port}")
    try:
        await serve(app, config, shutdown_trigger=shutdown_event.wait)
    except OSError as e:
        if "address already in use" in str(e).lower():
            logger.error(f"Port binding failed: {e}. Check if another instance is running.")
        else:
            logger.error(f"Server error: {e}")
        raise
    finally:
        await cleanup()


async def watch(url: str) -> None:
    """Follow a running server and print every status update"""
    from now_playing.client import ReconnectingClient

    client = ReconnectingClient(url=url)

    @client.on("connect")
    async def on_connect():
        print(f"Connected to {url}")
        await client.start_auto_refresh()
        await client.request_refresh()

    @client.on("statusUpdate")
    def on_status(data):
        print(format_status(data))

    @client.on("disconnect")
    def on_disconnect(reason):
        print(f"Disconnected ({reason})")

    @client.on("reconnect_failed")
    def on_failed():
        print("Could not reconnect, giving up")

    try:
        await client.run()
    finally:
        await client.close()
        await cleanup()


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows: fall back to KeyboardInterrupt
            pass


async def main(host: str, port: int, watch_url: Optional[str] = None) -> None:
    if watch_url:
        await watch(watch_url)
        return

    shutdown_event = asyncio.Event()
    _install_signal_handlers(shutdown_event)
    await run_server(host, port, shutdown_event)


def cli(argv=None) -> int:
    import argparse
    parser = argparse.ArgumentParser(description='TrackRelay - real-time now-playing relay')
    parser.add_argument('--host', default=SERVER.get("host", "0.0.0.0"),
                        help='Interface to bind (default: %(default)s)')
    parser.add_argument('--port', type=int, default=SERVER.get("port", 9012),
                        help='Port to listen on (default: %(default)s)')
    parser.add_argument('--watch', metavar='URL', nargs='?', const=CLIENT["url"], default=None,
                        help='Print updates from a running server instead of serving')
    parser.add_argument('--version', action='version', version=f'TrackRelay {VERSION}')
    args = parser.parse_args(argv)

    # Set up logging
    setup_logging(
        console_level=DEBUG.get("log_level", "INFO"),
        file_level="DEBUG" if DEBUG.get("log_detailed", False) else "INFO",
        console=DEBUG.get("log_to_console", True) and not args.watch,
        log_file=DEBUG.get("log_file", "track_relay.log"),
        log_providers=DEBUG.get("log_providers", True),
        log_now_playing=DEBUG.get("log_now_playing", True),
    )

    try:
        asyncio.run(main(args.host, args.port, args.watch))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt...")
    return 0


if __name__ == "__main__":
    sys.exit(cli())
