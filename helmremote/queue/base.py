"""Queue interface (port) between device ingestion and the controller."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from helmremote.core.models import ClassifiedEvent


class EventQueue(Protocol):
    """Port: accepts classified key events and delivers them in order."""

    async def put(self, event: ClassifiedEvent) -> None: ...

    async def get(self) -> ClassifiedEvent: ...

    def qsize(self) -> int: ...
