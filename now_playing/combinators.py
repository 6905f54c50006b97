"""
"Try, fall through on failure" helpers shared by the aggregator stages.

first_success races independent coroutines and keeps the first usable result.
first_available is the sequential analogue: it tries steps in order and stops
at the first one that yields something.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from logging_config import get_logger

logger = get_logger(__name__)


def _is_present(value: Any) -> bool:
    return value is not None


async def first_success(
    *aws: Awaitable[Any],
    is_usable: Callable[[Any], bool] = _is_present,
) -> Optional[Any]:
    """
    Run all awaitables concurrently and return the first usable result.

    A failure (exception or unusable value) in one contender neither cancels
    nor delays the others. Once a winner is found the remaining contenders are
    cancelled. Returns None when nothing usable comes back.
    """
    if not aws:
        return None

    pending = {asyncio.ensure_future(aw) for aw in aws}
    try:
        while pending:
            # Wait for the NEXT contender to finish
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    logger.debug(f"Race contender failed: {error}")
                    continue
                value = task.result()
                if is_usable(value):
                    return value
        return None
    finally:
        for task in pending:
            task.cancel()


async def first_available(
    *steps: Callable[[], Awaitable[Any]],
    is_usable: Callable[[Any], bool] = _is_present,
) -> Optional[Any]:
    """
    Call each zero-argument step in order and return the first usable result.

    A step that raises falls through to the next one. Returns None when every
    step came back empty.
    """
    for step in steps:
        name = getattr(step, "__name__", repr(step))
        try:
            value = await step()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Fallback step {name} failed: {e}")
            continue
        if is_usable(value):
            return value
        logger.debug(f"Fallback step {name} came back empty")
    return None
