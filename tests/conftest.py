"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
import struct

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

import helmremote.main as main_module
from helmremote.config import AppConfig

SERVICE_URL = "http://kip.test/plugins/kip"
RECORD = struct.Struct("<qqHHi")


def key_record(code: int, value: int = 1, ev_type: int = 1, sec: int = 1_700_000_000, usec: int = 0) -> bytes:
    """One 24-byte input record."""
    return RECORD.pack(sec, usec, ev_type, code, value)


def key_press(code: int) -> bytes:
    """Down, SYN, up: what a real key press looks like."""
    return key_record(code, 1) + key_record(0, 0, ev_type=0) + key_record(code, 0)


class FakeDisplayService:
    """Stateful stand-in for the Display Service, served through MockTransport."""

    def __init__(self) -> None:
        self.displays: list = [
            {"displayId": "D1", "displayName": "Helm"},
            {"displayId": "D2", "displayName": "Nav"},
        ]
        self.dashboards: dict[str, list] = {
            "D1": [{"id": "dash1"}, {"id": "dash2"}, {"id": "dash3"}],
            "D2": [{"id": "nav1"}],
        }
        self.indexes: dict[str, int] = {"D1": 0, "D2": 0}
        self.failing: set[str] = set()  # relative paths answering 503
        self.requests: list[tuple[str, str, object]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        rel = request.url.path.removeprefix("/plugins/kip/")
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, rel, body))
        if rel in self.failing or "*" in self.failing:
            return httpx.Response(503, text="service restarting")

        parts = rel.split("/")
        if request.method == "GET" and rel == "displays":
            return httpx.Response(200, json={"displays": self.displays})
        if request.method == "GET" and len(parts) == 2:
            if parts[1] not in self.dashboards:
                return httpx.Response(404, text="unknown display")
            return httpx.Response(200, json=self.dashboards[parts[1]])
        if request.method == "GET" and len(parts) == 3 and parts[2] == "screenIndex":
            return httpx.Response(200, json={"screenIndex": self.indexes.get(parts[1], 0)})
        if request.method == "POST" and len(parts) == 3 and parts[2] == "activeScreen":
            self.indexes[parts[1]] = body["changeId"]
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404, text="not found")

    def writes(self) -> list[tuple[str, int]]:
        return [
            (rel.split("/")[1], body["changeId"])
            for method, rel, body in self.requests
            if method == "POST"
        ]


class FakeStream:
    """ByteSource that hands out fed chunks and blocks until closed."""

    def __init__(self, path: str, chunks: list[bytes] | None = None) -> None:
        self.path = path
        self.closed = False
        self._chunks = list(chunks or [])
        self._wakeup = asyncio.Event()

    def feed(self, data: bytes) -> None:
        self._chunks.append(data)
        self._wakeup.set()

    async def read(self, size: int) -> bytes:
        while not self.closed:
            if self._chunks:
                return self._chunks.pop(0)
            self._wakeup.clear()
            await self._wakeup.wait()
        return b""

    def close(self) -> None:
        self.closed = True
        self._wakeup.set()


@pytest.fixture
def fake_service() -> FakeDisplayService:
    return FakeDisplayService()


@pytest.fixture
def service_http(fake_service) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_service.handler))


@pytest.fixture
def action_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def action_http(action_requests) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        action_requests.append(request)
        return httpx.Response(202, json={"ok": True})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def config(tmp_path) -> AppConfig:
    config = AppConfig()
    config.display_service.base_url = SERVICE_URL
    config.display_service.display_refresh_seconds = 0.05
    config.display_service.index_refresh_seconds = 0.05
    config.actions.local_base_url = "http://host.test:3000"
    config.bindings.file = str(tmp_path / "bindings.json")
    config.device.record_size = RECORD.size
    config.device.by_id_autodetect = False
    config.device.by_id_dir = str(tmp_path / "by-id")
    config.device.candidates_glob = str(tmp_path / "event*")
    config.logging.level = "warning"
    return config


@pytest.fixture
def engine(config, service_http, action_http):
    """A fully wired, not yet started engine, installed as the app singleton."""
    engine = main_module.build_engine(config, service_http, action_http)

    # Patch module-level singletons
    main_module._config = config
    main_module._engine = engine

    yield engine

    # Cleanup
    main_module._config = None
    main_module._engine = None


@pytest.fixture
async def client(engine):
    from helmremote.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
