"""Input device autodetection.

Two strategies, tried in order:

1. **by-id**: look for a stable ``/dev/input/by-id`` link whose name matches
   the remote's hardware name. Instant and deterministic.
2. **sniff**: open every candidate node at once and watch for key presses.
   The first node to deliver ``min_key_presses`` key-down events wins. The
   window is a hard deadline: detection never takes longer, and returns as
   soon as a winner exists.
"""

from __future__ import annotations

import asyncio
import glob
import os
import re
from typing import Awaitable, Callable, Iterable

import structlog

from helmremote.config import NATIVE_RECORD_SIZE
from helmremote.core.errors import DeviceUnavailable, StreamClosed
from helmremote.core.models import AutodetectResult
from helmremote.input.decoder import read_events
from helmremote.input.device import DeviceStream
from helmremote.input.keys import classify

log = structlog.get_logger()

Opener = Callable[[str], Awaitable[DeviceStream]]


def find_by_id(by_id_dir: str, pattern: str) -> str | None:
    """Return the by-id event link matching ``pattern``, preferring keyboard links."""
    try:
        entries = sorted(os.listdir(by_id_dir))
    except OSError:
        return None
    regex = re.compile(pattern, re.IGNORECASE)
    matches = [e for e in entries if regex.search(e) and "event" in e]
    if not matches:
        return None
    preferred = next((e for e in matches if "event-kbd" in e), matches[0])
    return os.path.join(by_id_dir, preferred)


def _node_number(path: str) -> tuple[int, str]:
    digits = re.search(r"(\d+)$", path)
    return (int(digits.group(1)) if digits else -1, path)


def candidate_paths(pattern: str) -> list[str]:
    """Event nodes matching ``pattern`` in numeric order (event2 before event10)."""
    return sorted(glob.glob(pattern), key=_node_number)


async def autodetect(
    candidates: Iterable[str],
    window: float,
    min_key_presses: int = 1,
    *,
    record_size: int = NATIVE_RECORD_SIZE,
    opener: Opener = DeviceStream.open,
) -> AutodetectResult | None:
    """Sniff ``candidates`` for key activity. Returns None when nobody qualifies."""
    paths = list(dict.fromkeys(candidates))
    if not paths:
        return None

    min_key_presses = max(1, min_key_presses)
    counts = {path: 0 for path in paths}
    winners: list[str] = []
    found = asyncio.Event()
    streams: list[DeviceStream] = []

    async def sniff(path: str) -> None:
        try:
            stream = await opener(path)
        except DeviceUnavailable as exc:
            log.info("autodetect_candidate_skipped", path=path, error=str(exc))
            return
        streams.append(stream)
        try:
            async for raw in read_events(stream, record_size):
                event = classify(raw)
                if event is None or event.action != "down":
                    continue
                counts[path] += 1
                if counts[path] >= min_key_presses and not winners:
                    winners.append(path)
                    found.set()
                    return
        except StreamClosed:
            pass

    log.info("autodetect_started", candidates=len(paths),
             window_seconds=window, min_key_presses=min_key_presses)

    tasks = [asyncio.create_task(sniff(path)) for path in paths]
    all_done = asyncio.gather(*tasks, return_exceptions=True)
    found_wait = asyncio.ensure_future(found.wait())
    try:
        await asyncio.wait({found_wait, all_done}, timeout=window,
                           return_when=asyncio.FIRST_COMPLETED)
    finally:
        found_wait.cancel()
        for stream in streams:
            stream.close()
        for task in tasks:
            task.cancel()
        await all_done

    if not winners:
        log.info("autodetect_not_found", counts=counts)
        return None

    log.info("autodetect_found", path=winners[0], presses=counts[winners[0]])
    return AutodetectResult(path=winners[0], method="sniff")


async def detect_device(
    *,
    by_id: bool,
    by_id_dir: str,
    by_id_pattern: str,
    candidates: Iterable[str],
    window: float,
    min_key_presses: int = 1,
    record_size: int = NATIVE_RECORD_SIZE,
    opener: Opener = DeviceStream.open,
) -> AutodetectResult | None:
    """by-id lookup first, sniffing second."""
    if by_id:
        path = find_by_id(by_id_dir, by_id_pattern)
        if path:
            log.info("autodetect_found", path=path, method="by-id")
            return AutodetectResult(path=path, method="by-id")
    return await autodetect(candidates, window, min_key_presses,
                            record_size=record_size, opener=opener)
