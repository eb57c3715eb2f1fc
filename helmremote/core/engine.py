"""Engine lifecycle: device selection, ingestion and background tasks.

Tasks started by ``start()``:

- device: autodetect if no path is configured, open the node, decode and
  classify records and put key events on the queue;
- consumer: the controller draining the queue;
- displays / indexes: the two reconciliation loops.

A device failure ends only the device task; the loops and the API keep
running and the status line reports the problem.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from helmremote.core.errors import AutodetectFailed, DeviceUnavailable, StreamClosed
from helmremote.input.autodetect import candidate_paths, detect_device
from helmremote.input.decoder import read_events
from helmremote.input.device import DeviceStream
from helmremote.input.keys import classify

if TYPE_CHECKING:
    from helmremote.bus.base import MessageBus
    from helmremote.config import AppConfig
    from helmremote.core.bindings import BindingTable
    from helmremote.core.controller import RemoteController
    from helmremote.core.models import AutodetectResult
    from helmremote.core.reconciler import Reconciler
    from helmremote.core.state import RemoteControlState
    from helmremote.input.autodetect import Opener
    from helmremote.queue.base import EventQueue

log = structlog.get_logger()


class RemoteEngine:
    """Owns the engine's tasks and exposes start/stop hooks to the host."""

    def __init__(
        self,
        config: AppConfig,
        state: RemoteControlState,
        reconciler: Reconciler,
        controller: RemoteController,
        queue: EventQueue,
        bindings: BindingTable,
        bus: MessageBus,
        opener: Opener = DeviceStream.open,
    ) -> None:
        self.config = config
        self.state = state
        self.reconciler = reconciler
        self.controller = controller
        self.queue = queue
        self.bindings = bindings
        self.bus = bus
        self._opener = opener
        self._stream: DeviceStream | None = None
        self._tasks: list[asyncio.Task] = []
        self._stopping = False

    async def start(self) -> None:
        self._stopping = False
        self.reconciler.resume()
        self.state.set_device_status("starting", "Starting…")
        self._tasks = [
            asyncio.create_task(self.reconciler.run_display_loop(), name="displays"),
            asyncio.create_task(self.reconciler.run_index_loop(), name="indexes"),
            asyncio.create_task(self.controller.run_consumer(self.queue), name="consumer"),
            asyncio.create_task(self._run_device(), name="device"),
        ]
        log.info("engine_started", device_path=self.config.device.path or None)

    async def detect(
        self,
        seconds: float | None = None,
        min_key_presses: int | None = None,
        prefer_by_id: bool | None = None,
    ) -> AutodetectResult | None:
        """Find the remote: by-id link first (if enabled), then sniffing."""
        device = self.config.device
        return await detect_device(
            by_id=device.by_id_autodetect if prefer_by_id is None else prefer_by_id,
            by_id_dir=device.by_id_dir,
            by_id_pattern=device.by_id_pattern,
            candidates=candidate_paths(device.candidates_glob),
            window=device.autodetect_seconds if seconds is None else seconds,
            min_key_presses=device.min_key_presses if min_key_presses is None else min_key_presses,
            record_size=device.record_size,
            opener=self._opener,
        )

    async def _run_device(self) -> None:
        path = self.config.device.path
        if not path:
            self.state.set_device_status(
                "starting", "Autodetecting input device… press some buttons")
            result = await self.detect()
            if result is None:
                exc = AutodetectFailed("Autodetect failed: no key activity detected")
                log.warning("device_autodetect_failed")
                self.state.record_error(str(exc))
                self.state.set_device_status(
                    "error", "No key activity detected. Set device path explicitly.")
                return
            path = result.path
            self.state.set_device_status("starting", f"Detected input device at {path} ({result.method})")

        try:
            stream = await self._opener(path)
        except DeviceUnavailable as exc:
            log.error("device_open_failed", path=path, error=str(exc))
            self.state.record_error(str(exc))
            self.state.set_device_status("error", f"Cannot read {path}")
            return

        self._stream = stream
        self.state.device_path = path
        self.state.set_device_status("ok", f"Listening on {path}")
        log.info("device_listening", path=path)
        await self._ingest(stream)

    async def _ingest(self, stream: DeviceStream) -> None:
        try:
            async for raw in read_events(stream, self.config.device.record_size):
                event = classify(raw)
                if event is not None:
                    await self.queue.put(event)
        except StreamClosed as exc:
            if self._stopping:
                return
            log.warning("device_stream_closed", path=stream.path,
                        reason=exc.reason, pending_bytes=exc.pending)
            self.state.record_error(str(DeviceUnavailable(f"{stream.path}: {exc.reason}")))
            self.state.set_device_status("error", "Input device closed; restart to reconnect")
        finally:
            stream.close()

    def snapshot(self) -> dict:
        snapshot = self.state.snapshot()
        snapshot["queue_depth"] = self.queue.qsize()
        snapshot["bindings"] = len(self.bindings)
        return snapshot

    async def stop(self) -> None:
        self._stopping = True
        self.reconciler.stop()
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        for task in self._tasks:
            if task.get_name() in ("consumer", "device"):
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.controller.cancel_pending()
        self.state.mark_stopped()
        log.info("engine_stopped")
