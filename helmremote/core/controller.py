"""Remote-control state machine.

Consumes classified key events and turns key-down presses into state changes:

- VOLUME_UP / VOLUME_DOWN step the selected display, locally and at once;
- NEXT / PREV step the selected display's dashboard on the Display Service
  (write-then-cache: the local index only moves after the service accepts);
- PLAY runs the action bound to the selected display + dashboard.

The consumer never waits on the network. Dashboard writes and play actions run
as separate tasks. Dashboard presses for one display queue behind each other
on a per-display lock, so every press computes its index from the result of
the one before it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from helmremote.core.errors import ActionFailed, ServiceUnavailable

if TYPE_CHECKING:
    from helmremote.bus.base import MessageBus
    from helmremote.core.bindings import BindingTable
    from helmremote.core.dispatcher import ActionDispatcher
    from helmremote.core.models import ClassifiedEvent, DispatchResult
    from helmremote.core.state import RemoteControlState
    from helmremote.queue.base import EventQueue
    from helmremote.service.client import DisplayServiceClient

log = structlog.get_logger()

DISPLAY_STEPS = {"VOLUME_UP": +1, "VOLUME_DOWN": -1}
DASHBOARD_STEPS = {"NEXT": +1, "PREV": -1}

BUS_PREFIX = "plugins.helmremote"


class RemoteController:
    """Applies key presses to RemoteControlState."""

    def __init__(
        self,
        state: RemoteControlState,
        service: DisplayServiceClient,
        dispatcher: ActionDispatcher,
        bindings: BindingTable,
        bus: MessageBus,
        commands: dict[str, str],
        publish_on: str = "down",
    ) -> None:
        self._state = state
        self._service = service
        self._dispatcher = dispatcher
        self._bindings = bindings
        self._bus = bus
        self._commands = commands
        self._publish_on = publish_on
        self._nav_locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    # ---- event intake ----

    async def handle(self, event: ClassifiedEvent) -> None:
        """Apply one event. Remote I/O is started, never awaited, here."""
        if self._publish_on == "any" or event.action == self._publish_on:
            self._state.record_key(event)
            self._publish_state()

        if event.action != "down" or event.code_name is None:
            return

        command = self._commands.get(event.code_name)
        if command in DISPLAY_STEPS:
            display_id = self._state.step_display(DISPLAY_STEPS[command])
            log.info("display_selected", display=display_id, key=event.code_name)
            self._publish_state()
        elif command in DASHBOARD_STEPS:
            display_id = self._state.active_display_id
            if display_id is not None:
                self._spawn(self._press_dashboard(display_id, DASHBOARD_STEPS[command]))
        elif command == "PLAY":
            self._spawn(self._press_play())

    async def run_consumer(self, queue: EventQueue) -> None:
        """Consume events from the queue. Runs as a background task."""
        log.info("controller_consumer_started")
        while True:
            event = await queue.get()
            try:
                await self.handle(event)
            except Exception:
                log.error("key_handling_failed", key=event.code_name, exc_info=True)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight presses to finish."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def cancel_pending(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _publish_state(self) -> None:
        last_key = self._state.last_key or {}
        self._bus.publish({
            f"{BUS_PREFIX}.display": self._state.active_display_id,
            f"{BUS_PREFIX}.lastKey": last_key.get("key"),
            f"{BUS_PREFIX}.lastKeyCode": last_key.get("code"),
            f"{BUS_PREFIX}.lastKeyAt": last_key.get("at"),
        })

    # ---- dashboards ----

    def _nav_lock(self, display_id: str) -> asyncio.Lock:
        known = set(self._state.display_ids)
        for stale in [did for did, lock in self._nav_locks.items()
                      if did not in known and not lock.locked()]:
            del self._nav_locks[stale]
        lock = self._nav_locks.get(display_id)
        if lock is None:
            lock = self._nav_locks[display_id] = asyncio.Lock()
        return lock

    async def step_dashboard(self, display_id: str, step: int) -> int | None:
        """Move ``display_id`` one dashboard forward or back, wrapping.

        Returns the new index, or None when there is nothing to step through.
        Raises ServiceUnavailable if the write is rejected; the cached index is
        then left untouched.
        """
        async with self._nav_lock(display_id):
            view = self._state.dashboard_view(display_id)
            if view is None or not view[0]:
                return None
            dashboards, current = view
            new_index = (current + step) % len(dashboards)
            return await self._write_index(display_id, new_index)

    async def set_active_dashboard(self, display_id: str, index: int) -> int | None:
        """Select dashboard ``index`` (clamped to the cached list) on ``display_id``."""
        async with self._nav_lock(display_id):
            view = self._state.dashboard_view(display_id)
            if view is None or not view[0]:
                return None
            new_index = max(0, min(index, len(view[0]) - 1))
            try:
                return await self._write_index(display_id, new_index)
            except ServiceUnavailable as exc:
                self._state.record_error(str(exc))
                raise

    async def _write_index(self, display_id: str, index: int) -> int | None:
        await self._service.set_active_screen(display_id, index)
        if not self._state.commit_index(display_id, index):
            log.info("dashboard_write_orphaned", display=display_id, index=index)
            return None
        log.info("dashboard_selected", display=display_id, index=index)
        return index

    async def _press_dashboard(self, display_id: str, step: int) -> None:
        try:
            await self.step_dashboard(display_id, step)
        except ServiceUnavailable as exc:
            log.warning("dashboard_write_failed", display=display_id, error=str(exc))
            self._state.record_error(str(exc))

    # ---- play ----

    async def trigger_play(self) -> DispatchResult | None:
        """Run the action bound to the current display + dashboard.

        Returns None when nothing is bound. Raises ActionFailed on failure,
        after recording it.
        """
        current = self._state.current_dashboard()
        if current is None:
            return None
        display_id, dashboard = current
        action = self._bindings.get(display_id, dashboard.id)
        if action.kind == "none":
            log.debug("play_unbound", display=display_id, dashboard=dashboard.id)
            return None
        try:
            result = await self._dispatcher.execute(action)
        except ActionFailed as exc:
            self._state.record_error(str(exc))
            raise
        if result is not None:
            self._state.record_action(result.summary)
        return result

    async def _press_play(self) -> None:
        try:
            await self.trigger_play()
        except ActionFailed as exc:
            log.warning("play_action_failed", error=str(exc))
