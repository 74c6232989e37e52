from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


async def cancel_suppress(task: asyncio.Task[object] | None) -> None:
    if not task or task.done():
        return
    # Awaiting the current task from itself deadlocks; callers running inside
    # the task just return instead.
    if task is asyncio.current_task():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


def ensure_task(coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
    return asyncio.create_task(coro, name=name)


async def run_every(
    interval_s: float, fn: Callable[[], Awaitable[object]], *, on_error: Callable[[BaseException], None]
) -> None:
    """Call `fn` every `interval_s` seconds until cancelled."""

    while True:
        await asyncio.sleep(interval_s)
        try:
            await fn()
        except Exception as e:
            on_error(e)
