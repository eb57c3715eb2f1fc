"""Play action dispatcher.

``rest`` actions call an absolute URL, or a path on the local host server when
no URL is given. ``signalk`` actions publish one value on the message bus.
Every failure is raised as ActionFailed; the caller decides how loud to be.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from helmremote.core.errors import ActionFailed
from helmremote.core.models import Action, DispatchResult

if TYPE_CHECKING:
    from helmremote.bus.base import MessageBus

log = structlog.get_logger()

ALLOWED_METHODS = ("GET", "POST")


class ActionDispatcher:
    """Executes one bound Action at a time."""

    def __init__(self, client: httpx.AsyncClient, bus: MessageBus,
                 local_base_url: str = "http://localhost:3000") -> None:
        self._client = client
        self._bus = bus
        self._local_base_url = local_base_url.rstrip("/")

    async def execute(self, action: Action) -> DispatchResult | None:
        if action.kind == "rest":
            return await self._execute_rest(action)
        if action.kind == "signalk":
            return self._execute_signalk(action)
        return None

    def _target_url(self, action: Action) -> str:
        if action.url:
            return action.url
        path = action.path or "/"
        if not path.startswith("/"):
            path = "/" + path
        return self._local_base_url + path

    async def _execute_rest(self, action: Action) -> DispatchResult:
        method = action.method.upper()
        if method not in ALLOWED_METHODS:
            raise ActionFailed(f"unsupported method {method}")
        url = self._target_url(action)
        body = None
        if method == "POST":
            body = action.body if action.body is not None else {}
        try:
            resp = await self._client.request(
                method, url, params=action.params or None, json=body,
            )
        except httpx.HTTPError as exc:
            raise ActionFailed(f"{method} {url} failed: {exc}") from exc

        log.info("play_rest_sent", method=method, url=url, status=resp.status_code)
        return DispatchResult(kind="rest", target=f"{method} {url}", status=resp.status_code)

    def _execute_signalk(self, action: Action) -> DispatchResult:
        if not action.path:
            raise ActionFailed("signalk action has no path")
        self._bus.publish({action.path: action.value})
        log.info("play_signalk_written", path=action.path)
        return DispatchResult(kind="signalk", target=action.path)
