"""Tying request-scoped work to the lifetime of the client connection."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, TypeVar

from fastapi import Request

T = TypeVar("T")

DISCONNECT_POLL_INTERVAL = 0.5

# Nonstandard status logged when the client went away before the response.
CLIENT_CLOSED_REQUEST = 499


class ClientDisconnected(Exception):
    """The client went away while its request was being served."""


async def until_disconnected(request: Request, aw: Awaitable[T]) -> T:
    """Await aw, cancelling it if the client disconnects first.

    Raises ClientDisconnected after the cancelled work has finished unwinding.
    """
    task = asyncio.ensure_future(aw)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
