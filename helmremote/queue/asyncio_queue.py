"""Bounded asyncio queue carrying classified key events from the device task."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from helmremote.core.models import ClassifiedEvent


class AsyncioEventQueue:
    """EventQueue on asyncio.Queue; ``put`` waits while the controller is behind."""

    def __init__(self, max_size: int = 1_000) -> None:
        self._queue: asyncio.Queue[ClassifiedEvent] = asyncio.Queue(maxsize=max_size)

    async def put(self, event: ClassifiedEvent) -> None:
        await self._queue.put(event)

    async def get(self) -> ClassifiedEvent:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()
