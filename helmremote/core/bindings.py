"""Play-button bindings: (display, dashboard) -> Action.

Bindings arrive from settings as flat items, e.g.::

    {"screenId": "helm", "dashboardId": "engine",
     "actionType": "rest", "method": "POST", "url": "http://pi/horn"}

An item may also nest the action fields under ``action``. Items missing a
display or dashboard id are skipped.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Iterable

import structlog

from helmremote.core.models import NO_ACTION, Action, Binding

if TYPE_CHECKING:
    from helmremote.storage.base import BindingStorage

log = structlog.get_logger()

ACTION_KINDS = ("none", "rest", "signalk")


def _field(item: dict, name: str, default: Any = None) -> Any:
    if item.get(name) is not None:
        return item[name]
    nested = item.get("action")
    if isinstance(nested, dict) and nested.get(name) is not None:
        return nested[name]
    return default


def action_from_dict(data: dict) -> Action:
    """Build an Action from a stored or user-supplied dict."""
    kind = str(data.get("type") or data.get("actionType") or data.get("kind") or "none")
    if kind == "rest":
        params = _field(data, "params", {})
        return Action(
            kind="rest",
            method=str(_field(data, "method", "GET")).upper(),
            url=str(_field(data, "url", "")).strip(),
            path=str(_field(data, "path", "")).strip(),
            params=dict(params) if isinstance(params, dict) else {},
            body=_field(data, "body"),
        )
    if kind == "signalk":
        return Action(
            kind="signalk",
            path=str(_field(data, "path") or _field(data, "key") or "").strip(),
            value=_field(data, "value"),
        )
    return NO_ACTION


def normalize_binding(item: Any) -> Binding | None:
    """Turn one settings item into a Binding, or None if it is unusable."""
    if not isinstance(item, dict):
        return None
    display_id = str(item.get("screenId") or item.get("displayId") or "").strip()
    dashboard_id = str(item.get("dashboardId") or "").strip()
    if not display_id or not dashboard_id:
        return None

    kind = str(item.get("actionType") or _field(item, "type") or "none")
    if kind not in ACTION_KINDS:
        kind = "none"
    fields = dict(item.get("action") or {}) if isinstance(item.get("action"), dict) else {}
    fields.update({k: v for k, v in item.items() if k != "action"})
    fields["type"] = kind
    return Binding(display_id=display_id, dashboard_id=dashboard_id,
                   action=action_from_dict(fields))


class BindingTable:
    """In-memory binding table, persisted through a BindingStorage."""

    def __init__(self, storage: BindingStorage) -> None:
        self._lock = threading.Lock()
        self._storage = storage
        self._bindings: dict[str, dict[str, Action]] = {}
        for display_id, dashboards in storage.load().items():
            if not isinstance(dashboards, dict):
                continue
            for dashboard_id, action in dashboards.items():
                if isinstance(action, dict):
                    self._bindings.setdefault(str(display_id), {})[str(dashboard_id)] = action_from_dict(action)

    def get(self, display_id: str, dashboard_id: str) -> Action:
        with self._lock:
            return self._bindings.get(display_id, {}).get(str(dashboard_id), NO_ACTION)

    def merge(self, bindings: Iterable[Binding]) -> int:
        """Add or overwrite bindings and persist. Returns how many were applied."""
        applied = 0
        with self._lock:
            for binding in bindings:
                self._bindings.setdefault(binding.display_id, {})[binding.dashboard_id] = binding.action
                applied += 1
            data = self._to_dict()
        self._storage.save(data)
        log.info("bindings_merged", applied=applied)
        return applied

    def merge_settings(self, items: Any) -> int:
        """Merge a list of settings items; unusable items are skipped."""
        if not isinstance(items, list):
            return 0
        bindings = [b for b in (normalize_binding(item) for item in items) if b is not None]
        skipped = len(items) - len(bindings)
        if skipped:
            log.warning("bindings_skipped", count=skipped)
        return self.merge(bindings)

    def _to_dict(self) -> dict:
        """Caller holds lock."""
        return {
            display_id: {dash_id: action.to_dict() for dash_id, action in dashboards.items()}
            for display_id, dashboards in self._bindings.items()
        }

    def to_dict(self) -> dict:
        with self._lock:
            return self._to_dict()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(d) for d in self._bindings.values())
