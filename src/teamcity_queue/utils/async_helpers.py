from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import inspect
from typing import Any, Awaitable, Coroutine, TypeVar

from teamcity_queue.core.exceptions import CancelledError

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously.

    Uses ``asyncio.run`` when no loop is running. Inside a running loop
    (Jupyter, an async host pipeline) the coroutine runs on a fresh loop in
    a worker thread and the calling thread blocks until it is done.

    Args:
        coro: The coroutine to run.

    Returns:
        The value returned by *coro*.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(asyncio.run, coro)
        return future.result()


async def wait_or_cancel(
    aw: Awaitable[T], cancel_event: asyncio.Event | None
) -> T:
    """Await *aw* unless *cancel_event* fires first.

    When the event is set before *aw* completes, *aw* is cancelled and
    awaited so nothing keeps running in the background, then
    :class:`~teamcity_queue.core.exceptions.CancelledError` is raised.
    If the calling task itself is cancelled, both helpers are torn down
    and ``asyncio.CancelledError`` propagates.

    Args:
        aw: The awaitable to run (a coroutine, task or future).
        cancel_event: Event signalling a caller-initiated abort, or
            ``None`` to simply await *aw*.

    Raises:
        CancelledError: If *cancel_event* is set before *aw* completes.
    """
    if cancel_event is None:
        return await aw

    if cancel_event.is_set():
        if inspect.iscoroutine(aw):
            aw.close()
        raise CancelledError("Operation cancelled by caller.", code="cancelled")

    work = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for pending in (waiter, work):
            if not pending.done():
                pending.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pending

    if work.cancelled():
        raise CancelledError("Operation cancelled by caller.", code="cancelled")
    return work.result()
