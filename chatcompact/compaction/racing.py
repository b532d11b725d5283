"""First-to-resolve racing of an awaitable against a timeout."""

import asyncio
from typing import Any, Awaitable

from loguru import logger


class _TimedOut:
    def __repr__(self) -> str:
        return "TIMED_OUT"


TIMED_OUT: Any = _TimedOut()


def _discard_late_result(task: asyncio.Future) -> None:
    """Swallow the eventual outcome of a race loser."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Discarded late failure after timeout: {exc!r}")
    else:
        logger.debug("Discarded late result after timeout")


async def race_with_timeout(awaitable: Awaitable[Any], timeout: float | None) -> Any:
    """Await *awaitable* for at most *timeout* seconds.

    Returns its result, or ``TIMED_OUT`` if the timeout wins. The loser is
    left to finish on its own and its result is ignored. Exceptions raised
    by the awaitable before the timeout propagate. If the caller itself is
    cancelled the pending awaitable is cancelled too.
    """
    task = asyncio.ensure_future(awaitable)
    if timeout is None:
        return await task

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.add_done_callback(_discard_late_result)
    return TIMED_OUT
