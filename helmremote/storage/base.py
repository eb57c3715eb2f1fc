"""Storage interface (port) for persisting play bindings."""

from __future__ import annotations

from typing import Protocol


class BindingStorage(Protocol):
    """Port: loads and saves the binding table as plain JSON-able data.

    The table shape is ``{display_id: {dashboard_id: action_dict}}``.
    """

    def load(self) -> dict: ...

    def save(self, data: dict) -> None: ...
