"""Normalization of Display Service payloads.

The service answers with bare values or with envelopes, and Signal K style
leaves wrap values as ``{"value": ...}``. Everything is converted here so the
rest of the engine only sees Display, Dashboard and int.
"""

from __future__ import annotations

from typing import Any

from helmremote.core.models import Dashboard, Display

DISPLAY_ID_FIELDS = ("id", "uuid", "displayId", "name")
DASHBOARD_ID_FIELDS = ("id", "uuid", "name")
INDEX_FIELDS = ("screenIndex", "index", "activeScreen")


def _unwrap_leaf(payload: Any) -> Any:
    if isinstance(payload, dict) and "value" in payload and len(payload) <= 3:
        return payload["value"]
    return payload


def _unwrap_list(payload: Any, *keys: str) -> list:
    payload = _unwrap_leaf(payload)
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def _first_present(item: dict, fields: tuple[str, ...]) -> str | None:
    for name in fields:
        value = item.get(name)
        if value is not None and str(value) != "":
            return str(value)
    return None


def display_id(item: Any, position: int) -> str:
    """First non-empty identity field, else a positional fallback."""
    if isinstance(item, dict):
        found = _first_present(item, DISPLAY_ID_FIELDS)
        if found is not None:
            return found
    elif isinstance(item, str) and item:
        return item
    return f"display-{position}"


def normalize_displays(payload: Any) -> list[Display]:
    displays = []
    seen = set()
    for position, item in enumerate(_unwrap_list(payload, "displays", "items")):
        did = display_id(item, position)
        if did in seen:
            continue
        seen.add(did)
        name = did
        if isinstance(item, dict):
            name = str(item.get("displayName") or item.get("name") or did)
        displays.append(Display(id=did, name=name, raw=item))
    return displays


def normalize_dashboards(payload: Any) -> list[Dashboard]:
    dashboards = []
    for position, item in enumerate(_unwrap_list(payload, "dashboards", "items")):
        if isinstance(item, dict):
            did = _first_present(item, DASHBOARD_ID_FIELDS) or str(position)
            name = str(item.get("name") or item.get("title") or did)
            dashboards.append(Dashboard(id=did, name=name))
        elif isinstance(item, (str, int)) and not isinstance(item, bool):
            dashboards.append(Dashboard(id=str(item), name=str(item)))
        else:
            dashboards.append(Dashboard(id=str(position), name=str(position)))
    return dashboards


def _as_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def normalize_screen_index(payload: Any) -> int | None:
    """Active index from a bare number or an object carrying it; None if absent."""
    payload = _unwrap_leaf(payload)
    index = _as_index(payload)
    if index is not None:
        return index
    if isinstance(payload, dict):
        for key in INDEX_FIELDS:
            index = _as_index(_unwrap_leaf(payload.get(key)))
            if index is not None:
                return index
    return None
