"""Tests for the engine lifecycle: device task, loops and shutdown."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeStream, key_press
from helmremote.core.errors import DeviceUnavailable

DEVICE = "/dev/input/event-remote"


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


def use_stream(engine, stream: FakeStream) -> None:
    async def opener(path: str) -> FakeStream:
        assert path == stream.path
        return stream

    engine._opener = opener


@pytest.mark.asyncio
async def test_key_presses_drive_the_state(engine, fake_service):
    engine.config.device.path = DEVICE
    stream = FakeStream(DEVICE)
    use_stream(engine, stream)

    await engine.start()
    await wait_until(lambda: engine.state.display_ids == ["D1", "D2"])
    await wait_until(lambda: engine.state.status == f"Listening on {DEVICE}")
    assert engine.state.device_path == DEVICE

    stream.feed(key_press(115))
    await wait_until(lambda: engine.state.active_display_id == "D2")

    stream.feed(key_press(163))
    await wait_until(lambda: fake_service.writes() == [("D2", 0)])

    await asyncio.wait_for(engine.stop(), 1.0)
    assert stream.closed
    assert engine.state.health == "stopped"
    assert engine.state.status == "Stopped"


@pytest.mark.asyncio
async def test_restart_after_stop(engine):
    engine.config.device.path = DEVICE
    use_stream(engine, FakeStream(DEVICE))
    await engine.start()
    await asyncio.wait_for(engine.stop(), 1.0)

    use_stream(engine, FakeStream(DEVICE))
    await engine.start()
    await wait_until(lambda: engine.state.health == "ok")
    await asyncio.wait_for(engine.stop(), 1.0)


@pytest.mark.asyncio
async def test_autodetect_failure_is_reported(engine):
    await engine.start()
    await wait_until(lambda: engine.state.health == "error")
    assert engine.state.status == "No key activity detected. Set device path explicitly."
    assert any("no key activity" in e["m"] for e in engine.state.errors)

    # The loops keep running without a device.
    await wait_until(lambda: engine.state.display_ids == ["D1", "D2"])
    await asyncio.wait_for(engine.stop(), 1.0)


@pytest.mark.asyncio
async def test_open_failure_is_reported(engine):
    engine.config.device.path = DEVICE

    async def opener(path: str):
        raise DeviceUnavailable(f"cannot open {path}: permission denied")

    engine._opener = opener
    await engine.start()
    await wait_until(lambda: engine.state.health == "error")
    assert engine.state.status == f"Cannot read {DEVICE}"
    await asyncio.wait_for(engine.stop(), 1.0)


@pytest.mark.asyncio
async def test_stream_closing_underneath_is_reported(engine):
    engine.config.device.path = DEVICE
    stream = FakeStream(DEVICE)
    use_stream(engine, stream)
    await engine.start()
    await wait_until(lambda: engine.state.health == "ok")

    stream.close()
    await wait_until(lambda: engine.state.health == "error")
    assert engine.state.status == "Input device closed; restart to reconnect"
    assert any("end of stream" in e["m"] for e in engine.state.errors)
    await asyncio.wait_for(engine.stop(), 1.0)


@pytest.mark.asyncio
async def test_detected_device_is_used(engine, tmp_path):
    (tmp_path / "event3").touch()
    path = str(tmp_path / "event3")
    stream = FakeStream(path, [key_press(164)])
    use_stream(engine, stream)

    result = await engine.detect(seconds=1.0)
    assert result.path == path
    assert result.method == "sniff"
