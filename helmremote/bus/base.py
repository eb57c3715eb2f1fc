"""Message bus interface (port) for state writes to the host."""

from __future__ import annotations

from typing import Any, Protocol


class MessageBus(Protocol):
    """Port: publishes path/value updates to the host's data model."""

    def publish(self, values: dict[str, Any]) -> None: ...
