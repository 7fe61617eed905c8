"""Bridges from MCP handlers to the blocking engine."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` on a worker thread.

    Engine calls read and write files, so they never run on the event loop::

        status = await run_sync(instance.project.status)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_serialized(
    lock: asyncio.Lock, func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """``run_sync`` under *lock*; used for every call that writes state."""
    if lock.locked():
        logger.debug("Waiting for in-flight operation before %s", func.__name__)
    async with lock:
        return await run_sync(func, *args, **kwargs)
