"""Remote-control state shared by the reconciler, the controller and the API.

One instance per engine. Every read and mutation takes the same lock, and
the lock is never held across I/O. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from datetime import datetime, timezone

from helmremote.core.models import ClassifiedEvent, Dashboard, Display

# Worst condition wins when building the status line.
HEALTH_RANK = {
    "ok": 0,
    "starting": 1,
    "degraded": 2,
    "waiting": 3,
    "error": 4,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RemoteControlState:
    """Thread-safe model of selected display and active dashboards.

    Invariant: ``active_display_id`` is None or one of ``display_ids``. Every
    mutation that can break it repairs it before releasing the lock, falling
    back to the first known display (or None when there are none).

    Dashboard indices carry a per-display generation that is bumped by local
    writes. A poller captures the generation before fetching and its result is
    discarded if a local write committed meanwhile.
    """

    def __init__(self, max_errors: int = 10) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()

        self._displays: list[Display] = []
        self._display_ids: list[str] = []
        self._active_display_id: str | None = None
        self._dashboards: dict[str, list[Dashboard]] = {}
        self._active_index: dict[str, int] = {}
        self._generations: dict[str, int] = {}
        self._last_updated: str | None = None
        self._errors: deque[dict] = deque(maxlen=max_errors)

        self.device_path: str | None = None
        self._device = ("starting", "Starting…")
        # Latest condition per reconciliation loop, in tie-break order.
        self._service: dict[str, tuple[str, str]] = {"displays": ("starting", "Starting…")}
        self._stopped = False

        self._last_key: dict | None = None
        self._last_action: str | None = None

    # ---- displays ----

    def _ensure_active_valid(self) -> None:
        """Caller holds lock."""
        if not self._display_ids:
            self._active_display_id = None
        elif self._active_display_id not in self._display_ids:
            self._active_display_id = self._display_ids[0]

    def apply_displays(self, displays: list[Display]) -> list[str]:
        """Replace the display list. Returns the ids that disappeared."""
        with self._lock:
            self._displays = list(displays)
            self._display_ids = [d.id for d in displays]
            known = set(self._dashboards) | set(self._active_index) | set(self._generations)
            removed = sorted(did for did in known if did not in self._display_ids)
            for did in removed:
                self._dashboards.pop(did, None)
                self._active_index.pop(did, None)
                self._generations.pop(did, None)
            self._ensure_active_valid()
            self._last_updated = _now_iso()
            return removed

    @property
    def display_ids(self) -> list[str]:
        with self._lock:
            return list(self._display_ids)

    @property
    def active_display_id(self) -> str | None:
        with self._lock:
            return self._active_display_id

    def set_active_display(self, display_id: str | None) -> str | None:
        """Select ``display_id``; unknown or missing ids fall back to the first display."""
        with self._lock:
            if display_id is not None and display_id in self._display_ids:
                self._active_display_id = display_id
            else:
                self._active_display_id = self._display_ids[0] if self._display_ids else None
            return self._active_display_id

    def step_display(self, step: int) -> str | None:
        """Move the selection ``step`` places through the display list, wrapping."""
        with self._lock:
            if not self._display_ids:
                self._active_display_id = None
                return None
            self._ensure_active_valid()
            i = self._display_ids.index(self._active_display_id)
            self._active_display_id = self._display_ids[(i + step) % len(self._display_ids)]
            return self._active_display_id

    # ---- dashboards ----

    def apply_dashboards(self, display_id: str, dashboards: list[Dashboard]) -> bool:
        with self._lock:
            if display_id not in self._display_ids:
                return False
            self._dashboards[display_id] = list(dashboards)
            self._last_updated = _now_iso()
            return True

    def index_generation(self, display_id: str) -> int:
        with self._lock:
            return self._generations.get(display_id, 0)

    def apply_index(self, display_id: str, index: int, generation: int) -> bool:
        """Store a polled index unless a local write committed since ``generation``."""
        with self._lock:
            if display_id not in self._display_ids:
                return False
            if self._generations.get(display_id, 0) != generation:
                return False
            self._active_index[display_id] = index
            return True

    def commit_index(self, display_id: str, index: int) -> bool:
        """Cache an index the Display Service has acknowledged.

        Returns False, caching nothing, if the display went away meanwhile.
        """
        with self._lock:
            if display_id not in self._display_ids:
                return False
            self._active_index[display_id] = index
            self._generations[display_id] = self._generations.get(display_id, 0) + 1
            self._last_updated = _now_iso()
            return True

    def dashboard_view(self, display_id: str) -> tuple[list[Dashboard], int] | None:
        """(dashboards, current index) for a known display, else None."""
        with self._lock:
            if display_id not in self._display_ids:
                return None
            return list(self._dashboards.get(display_id, [])), self._active_index.get(display_id, 0)

    def current_dashboard(self) -> tuple[str, Dashboard] | None:
        """(active display id, dashboard at its current index), if both exist."""
        with self._lock:
            did = self._active_display_id
            if did is None:
                return None
            dashboards = self._dashboards.get(did, [])
            index = self._active_index.get(did, 0)
            if not 0 <= index < len(dashboards):
                return None
            return did, dashboards[index]

    # ---- health & telemetry ----

    def record_error(self, message: str) -> None:
        with self._lock:
            self._errors.append({"t": _now_iso(), "m": message})

    @property
    def errors(self) -> list[dict]:
        with self._lock:
            return list(self._errors)

    def set_device_status(self, health: str, message: str) -> None:
        with self._lock:
            self._device = (health, message)
            self._stopped = False

    def set_service_status(self, health: str, message: str, source: str = "displays") -> None:
        """Record the latest condition reported by one reconciliation loop."""
        with self._lock:
            self._service[source] = (health, message)

    def mark_stopped(self) -> None:
        with self._lock:
            self._stopped = True

    def _worst(self) -> tuple[str, str]:
        """Caller holds lock. Device condition wins ties."""
        if self._stopped:
            return "stopped", "Stopped"
        worst = self._device
        for condition in self._service.values():
            if HEALTH_RANK[condition[0]] > HEALTH_RANK[worst[0]]:
                worst = condition
        return worst

    @property
    def health(self) -> str:
        with self._lock:
            return self._worst()[0]

    @property
    def status(self) -> str:
        with self._lock:
            return self._worst()[1]

    def record_key(self, event: ClassifiedEvent) -> None:
        with self._lock:
            self._last_key = {
                "key": event.code_name,
                "code": event.code,
                "action": event.action,
                "at": _now_iso(),
            }

    @property
    def last_key(self) -> dict | None:
        with self._lock:
            return dict(self._last_key) if self._last_key else None

    def record_action(self, summary: str) -> None:
        with self._lock:
            self._last_action = summary

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of the state."""
        with self._lock:
            health, status = self._worst()
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "device_path": self.device_path,
                "displays": [{"id": d.id, "name": d.name} for d in self._displays],
                "active_display_id": self._active_display_id,
                "dashboards_by_display": {
                    did: [d.id for d in dashboards]
                    for did, dashboards in self._dashboards.items()
                },
                "dashboard_counts": {
                    did: len(dashboards) for did, dashboards in self._dashboards.items()
                },
                "active_dashboard_by_display": dict(self._active_index),
                "last_updated": self._last_updated,
                "last_key": dict(self._last_key) if self._last_key else None,
                "last_action": self._last_action,
                "health": health,
                "status": status,
                "errors": list(self._errors),
            }
