#!/usr/bin/env python3
"""helmremote key-press simulator.

Writes input-event records for a sequence of button presses to a file or
FIFO, so the engine can be exercised without the physical remote. Point the
engine at the same path (``HELM_DEVICE_PATH``).

Usage:
    # Cycle displays twice, then step through dashboards
    python -m tools.simulator.simulate --device /tmp/remote --keys VOLUMEUP,VOLUMEUP,NEXTSONG

    # Hold PLAY for one auto-repeat, 16-byte records, then show engine status
    python -m tools.simulator.simulate --device /tmp/remote --keys PLAYPAUSE --repeat 1 \
        --record-size 16 --server http://localhost:8100
"""

from __future__ import annotations

import argparse
import asyncio
import os
import stat
import struct
import time

import httpx

from helmremote.input.keys import EV_KEY, EV_SYN, KEY_CODES

RECORD_FORMATS = {24: struct.Struct("<qqHHi"), 16: struct.Struct("<iiHHi")}


def make_record(record: struct.Struct, ev_type: int, code: int, value: int) -> bytes:
    now = time.time()
    return record.pack(int(now), int((now % 1) * 1_000_000), ev_type, code, value)


def make_press(record: struct.Struct, code: int, repeats: int = 0) -> bytes:
    """Down, optional auto-repeats, up; each followed by a SYN report."""
    values = [1] + [2] * repeats + [0]
    return b"".join(
        make_record(record, EV_KEY, code, value) + make_record(record, EV_SYN, 0, 0)
        for value in values
    )


def parse_keys(names: str) -> list[tuple[str, int]]:
    keys = []
    for name in names.split(","):
        name = name.strip().upper()
        if not name:
            continue
        if not name.startswith("KEY_"):
            name = "KEY_" + name
        if name not in KEY_CODES:
            raise SystemExit(f"unknown key {name}")
        keys.append((name, KEY_CODES[name]))
    return keys


async def send_presses(args: argparse.Namespace) -> int:
    """Write every press to the device path. Returns the number written."""
    record = RECORD_FORMATS[args.record_size]
    keys = parse_keys(args.keys)

    if args.fifo and not os.path.exists(args.device):
        os.mkfifo(args.device)
    is_fifo = os.path.exists(args.device) and stat.S_ISFIFO(os.stat(args.device).st_mode)
    if is_fifo:
        print(f"Waiting for a reader on {args.device}...")

    sent = 0
    # Opening a FIFO for writing blocks until the engine opens it for reading.
    with await asyncio.to_thread(open, args.device, "ab", 0) as f:
        for name, code in keys:
            f.write(make_press(record, code, args.repeat))
            sent += 1
            print(f"  {name} ({code})")
            await asyncio.sleep(args.interval)
    return sent


async def run_simulation(args: argparse.Namespace) -> None:
    print(f"Sending {args.keys} to {args.device}")
    print(f"  Record size: {args.record_size}")
    print(f"  Interval: {args.interval}s")
    print()

    start = time.monotonic()
    sent = await send_presses(args)
    print(f"\nSent {sent} presses in {time.monotonic() - start:.1f}s")

    if not args.server:
        return
    # Give the engine a moment to apply the last press.
    await asyncio.sleep(args.interval)
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(f"{args.server}/api/v1/status")
    except httpx.RequestError as exc:
        print(f"\nCould not reach {args.server}: {exc}")
        return
    if resp.status_code != 200:
        print(f"\nStatus request failed: HTTP {resp.status_code}")
        return

    status = resp.json()
    active = status["active_display_id"]
    print("\nEngine status:")
    print(f"  Health: {status['health']} ({status['status']})")
    print(f"  Active display: {active}")
    if active is not None:
        print(f"  Active dashboard: {status['active_dashboard_by_display'].get(active)}")
    print(f"  Last key: {status['last_key']}")
    print(f"  Last action: {status['last_action']}")


def main():
    parser = argparse.ArgumentParser(description="helmremote key-press simulator")
    parser.add_argument("--device", required=True, help="File or FIFO the engine reads")
    parser.add_argument("--keys", default="VOLUMEUP,NEXTSONG,PLAYPAUSE",
                        help="Comma-separated key names, with or without KEY_ prefix")
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between presses")
    parser.add_argument("--repeat", type=int, default=0, help="Auto-repeat records per press")
    parser.add_argument("--record-size", type=int, choices=sorted(RECORD_FORMATS), default=24,
                        help="Input record size in bytes (default: 24)")
    parser.add_argument("--fifo", action="store_true", help="Create --device as a FIFO if missing")
    parser.add_argument("--server", default="", help="Engine URL; prints its status when done")

    args = parser.parse_args()
    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
