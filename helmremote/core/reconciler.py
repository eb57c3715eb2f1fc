"""Reconciliation with the Display Service.

Two periodic loops keep RemoteControlState in step with the service:

- the display loop refreshes the display list and every display's dashboards;
- the index loop, on a tighter cadence, refreshes every display's active index.

A failure never stops a loop. A failed display-list fetch leaves all caches
as they were and reports "waiting"; a failure for one display keeps that
display's previous data and reports "degraded". Each loop reports its own
condition, so a healthy pass of one never hides a failing pass of the other.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from helmremote.core.errors import ServiceUnavailable

if TYPE_CHECKING:
    from helmremote.core.state import RemoteControlState
    from helmremote.service.client import DisplayServiceClient

log = structlog.get_logger()

WAITING_MESSAGE = "Waiting for display service…"


class Reconciler:
    """Polls the Display Service and merges results into the state."""

    def __init__(
        self,
        service: DisplayServiceClient,
        state: RemoteControlState,
        display_interval: float = 2.0,
        index_interval: float = 1.0,
    ) -> None:
        self._service = service
        self._state = state
        self._display_interval = display_interval
        self._index_interval = index_interval
        self._stopping = asyncio.Event()

    async def refresh_displays(self) -> bool:
        """One display-list + dashboards pass. Returns False if the list fetch failed."""
        try:
            displays = await self._service.list_displays()
        except ServiceUnavailable as exc:
            log.warning("display_refresh_failed", error=str(exc))
            self._state.record_error(str(exc))
            self._state.set_service_status("waiting", WAITING_MESSAGE)
            return False

        removed = self._state.apply_displays(displays)
        if removed:
            log.info("displays_removed", displays=removed)

        failed = []
        for display in displays:
            try:
                dashboards = await self._service.get_dashboards(display.id)
            except ServiceUnavailable as exc:
                log.warning("dashboard_refresh_failed", display=display.id, error=str(exc))
                self._state.record_error(str(exc))
                failed.append(display.id)
                continue
            self._state.apply_dashboards(display.id, dashboards)

        if failed:
            self._state.set_service_status(
                "degraded", f"Degraded: no dashboards for {', '.join(failed)}")
        else:
            self._state.set_service_status(
                "ok", f"OK (display={self._state.active_display_id})")
        return True

    async def refresh_indexes(self) -> None:
        """One active-index pass over every known display."""
        failed = []
        for display_id in self._state.display_ids:
            generation = self._state.index_generation(display_id)
            try:
                index = await self._service.get_screen_index(display_id)
            except ServiceUnavailable as exc:
                log.debug("index_refresh_failed", display=display_id, error=str(exc))
                self._state.record_error(str(exc))
                failed.append(display_id)
                continue
            if index is None:
                continue
            if not self._state.apply_index(display_id, index, generation):
                log.debug("index_refresh_discarded", display=display_id, index=index)

        if failed:
            self._state.set_service_status(
                "degraded", f"Degraded: no screen index for {', '.join(failed)}", source="indexes")
        else:
            self._state.set_service_status("ok", "OK", source="indexes")

    async def _run_every(self, interval: float, tick: Callable[[], Awaitable[object]], name: str) -> None:
        log.info("reconcile_loop_started", loop=name, interval_seconds=interval)
        while not self._stopping.is_set():
            try:
                await tick()
            except Exception:
                log.error("reconcile_tick_failed", loop=name, exc_info=True)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        log.info("reconcile_loop_stopped", loop=name)

    async def run_display_loop(self) -> None:
        await self._run_every(self._display_interval, self.refresh_displays, "displays")

    async def run_index_loop(self) -> None:
        await self._run_every(self._index_interval, self.refresh_indexes, "indexes")

    def resume(self) -> None:
        self._stopping.clear()

    def stop(self) -> None:
        self._stopping.set()
