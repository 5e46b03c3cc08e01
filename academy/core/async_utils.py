"""Bridge from the sync services to the async email transport."""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio

T = TypeVar("T")


def _in_event_loop_thread() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Await `coro` from synchronous code and return its result.

    The dispatcher uses this to wait on EmailSender.send_email. Called from
    the inactive-scan endpoint it runs on FastAPI's worker thread, so the
    coroutine is handed back to the server loop. Called from the CLI or a
    plain thread it gets a loop of its own. TimeoutError is raised once
    `timeout` seconds pass.
    """

    async def _bounded() -> T:
        if timeout is None:
            return await coro
        with anyio.fail_after(timeout):
            return await coro

    try:
        return anyio.from_thread.run(_bounded)
    except RuntimeError:
        if not _in_event_loop_thread():
            return anyio.run(_bounded)
    # Blocking here would deadlock the loop this thread is driving
    coro.close()
    raise RuntimeError("run_async called from async context; use await instead")
