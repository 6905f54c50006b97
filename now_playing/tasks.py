"""
Background task tracking.

Tasks created here are referenced until they finish, so they can't be garbage
collected mid-flight, and failures are logged instead of vanishing.
"""
import asyncio
from typing import Coroutine, Set

from logging_config import get_logger

logger = get_logger(__name__)

_background_tasks: Set[asyncio.Task] = set()


def create_tracked_task(coro: Coroutine, name: str = None) -> asyncio.Task:
    """
    Create a background task with automatic cleanup and error logging.
    Prevents silent failures and ensures tasks complete even if references are lost.
    """
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)

    def cleanup(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            return
        error = t.exception()
        if error is not None:
            logger.error(f"Background task {t.get_name()} failed: {error}", exc_info=error)

    task.add_done_callback(cleanup)
    return task


async def cancel_background_tasks(timeout: float = 0.5) -> None:
    """Cancel every tracked task (shutdown path)"""
    for task in list(_background_tasks):
        if task is asyncio.current_task() or task.done():
            continue
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=timeout)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            pass


def background_task_count() -> int:
    return len(_background_tasks)
