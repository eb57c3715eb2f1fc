"""Display Service HTTP client.

Every failure (transport error, non-2xx status, undecodable body) surfaces as
ServiceUnavailable. Payloads are normalized before they leave this module.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from helmremote.core.errors import ServiceUnavailable
from helmremote.core.models import Dashboard, Display
from helmremote.service.normalize import (
    normalize_dashboards,
    normalize_displays,
    normalize_screen_index,
)

log = structlog.get_logger()


def _display_path(display_id: str) -> str:
    return f"displays/{quote(display_id, safe='')}"


class DisplayServiceClient:
    """Reads displays and dashboards, and selects the active dashboard."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, token: str = "") -> None:
        self._client = client
        self._base_url = base_url.rstrip("/") + "/"
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, json: object = None) -> object:
        url = self._base_url + path
        try:
            resp = await self._client.request(method, url, json=json, headers=self._headers)
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(f"{method} {path} failed: {exc}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ServiceUnavailable(f"{method} {path} -> HTTP {resp.status_code} ({resp.text[:200]})")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ServiceUnavailable(f"{method} {path} returned invalid JSON") from exc

    async def list_displays(self) -> list[Display]:
        return normalize_displays(await self._request("GET", "displays"))

    async def get_dashboards(self, display_id: str) -> list[Dashboard]:
        return normalize_dashboards(await self._request("GET", _display_path(display_id)))

    async def get_screen_index(self, display_id: str) -> int | None:
        payload = await self._request("GET", _display_path(display_id) + "/screenIndex")
        return normalize_screen_index(payload)

    async def set_active_screen(self, display_id: str, index: int) -> None:
        await self._request("POST", _display_path(display_id) + "/activeScreen",
                            json={"changeId": index})
        log.debug("active_screen_written", display=display_id, index=index)
