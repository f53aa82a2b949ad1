"""Animated status messages shown while the pipeline waits on I/O."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import anyio

from .presentation import Presentation


def loading_frame(message: str, tick: int) -> str:
    return message + "." * (tick % 4)


async def _tick(presentation: Presentation, message: str, interval: float) -> None:
    tick = 0
    while True:
        await anyio.sleep(interval)
        tick += 1
        await presentation.show_status(loading_frame(message, tick))


@asynccontextmanager
async def status_ticker(
    presentation: Presentation, message: str, interval_ms: int
) -> AsyncIterator[None]:
    """Display ``message`` with cycling dots until the block exits."""
    await presentation.show_status(loading_frame(message, 0))
    async with anyio.create_task_group() as tg:
        tg.start_soon(_tick, presentation, message, interval_ms / 1000)
        try:
            yield
        finally:
            tg.cancel_scope.cancel()
