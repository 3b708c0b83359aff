import asyncio
import logging
from functools import partial
from typing import Any, Callable, Optional

import anyio

logger = logging.getLogger("flux.utility")

_background_tasks = set()


async def run_blocking(func: Callable, *args: Any, timeout: Optional[float] = None, **kwargs: Any):
    """Run a blocking SDK/HTTP call in a worker thread, bounded by ``timeout``.

    Raises TimeoutError when the call does not finish in time; the worker
    thread is abandoned rather than joined.
    """
    with anyio.fail_after(timeout):
        return await anyio.to_thread.run_sync(partial(func, *args, **kwargs), abandon_on_cancel=True)


def run_in_background(func: Callable, *args: Any, **kwargs: Any):
    """Schedule ``func`` on the running loop without waiting for it.

    Failures are logged and never reach the caller.
    """
    async def _runner():
        try:
            result = func(*args, **kwargs)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.error("Background task %s failed", getattr(func, "__qualname__", func), exc_info=True)

    task = asyncio.create_task(_runner())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks():
    while _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)
