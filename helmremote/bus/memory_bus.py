"""In-memory message bus.

Keeps the latest value per path so the API and tests can read back what was
published. A host integration replaces this with its own bus.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any

import structlog

log = structlog.get_logger()


class InMemoryBus:
    """MessageBus that records the latest value and timestamp per path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, dict[str, Any]] = {}
        self.published: int = 0

    def publish(self, values: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            for path, value in values.items():
                self._values[path] = {"value": value, "timestamp": now}
            self.published += 1
        log.debug("bus_published", paths=sorted(values))

    def get(self, path: str) -> Any:
        with self._lock:
            entry = self._values.get(path)
            return entry["value"] if entry else None

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {path: dict(entry) for path, entry in self._values.items()}
