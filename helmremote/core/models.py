"""helmremote: core internal data models.

These are plain dataclasses with no framework dependencies.
Display Service payloads are converted to these at the client boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RawEvent:
    """One decoded input record, exactly as the kernel wrote it."""
    timestamp_sec: int
    timestamp_usec: int
    type: int
    code: int
    value: int

    @property
    def timestamp(self) -> float:
        return self.timestamp_sec + self.timestamp_usec / 1_000_000


@dataclass(frozen=True)
class ClassifiedEvent:
    type_name: str
    code_name: str | None
    code: int
    action: str  # "down", "up" or "repeat"


@dataclass(frozen=True)
class Display:
    id: str
    name: str
    raw: Any = None


@dataclass(frozen=True)
class Dashboard:
    id: str
    name: str = ""


@dataclass(frozen=True)
class Action:
    kind: str = "none"  # "none", "rest" or "signalk"
    method: str = "GET"
    url: str = ""
    path: str = ""      # local server path (rest) or bus path (signalk)
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    value: Any = None

    def to_dict(self) -> dict:
        if self.kind == "rest":
            return {
                "type": "rest",
                "method": self.method,
                "url": self.url,
                "path": self.path,
                "params": dict(self.params),
                "body": self.body,
            }
        if self.kind == "signalk":
            return {"type": "signalk", "path": self.path, "value": self.value}
        return {"type": "none"}


NO_ACTION = Action()


@dataclass(frozen=True)
class Binding:
    display_id: str
    dashboard_id: str
    action: Action


@dataclass(frozen=True)
class AutodetectResult:
    path: str
    method: str  # "by-id" or "sniff"


@dataclass(frozen=True)
class DispatchResult:
    kind: str
    target: str
    status: int | None = None

    @property
    def summary(self) -> str:
        if self.kind == "rest":
            return f"Play REST {self.target} -> {self.status}"
        return f"Play SK write: {self.target}"
