"""Tests for the remote-control API endpoints."""

from __future__ import annotations

import pytest


async def _refresh(engine) -> None:
    await engine.reconciler.refresh_displays()
    await engine.reconciler.refresh_indexes()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "starting"
    assert data["version"] == "0.1.0"
    assert "uptime_seconds" in data
    assert data["queue_depth"] == 0


@pytest.mark.asyncio
async def test_config_endpoint_hides_token(client, config):
    config.display_service.token = "secret"
    resp = await client.get("/api/v1/config")
    assert resp.status_code == 200
    data = resp.json()
    assert data["display_service"]["has_token"] is True
    assert "secret" not in resp.text
    assert data["keymap"]["KEY_NEXTSONG"] == "NEXT"


@pytest.mark.asyncio
async def test_status_after_refresh(client, engine):
    await _refresh(engine)
    resp = await client.get("/api/v1/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["displays"] == [{"id": "D1", "name": "Helm"}, {"id": "D2", "name": "Nav"}]
    assert data["active_display_id"] == "D1"
    assert data["dashboard_counts"] == {"D1": 3, "D2": 1}
    assert data["bindings"] == 0


@pytest.mark.asyncio
async def test_put_display(client, engine):
    await _refresh(engine)
    resp = await client.put("/api/v1/display", json={"value": "D2"})
    assert resp.json() == {"value": "D2"}

    resp = await client.put("/api/v1/display", json={"displayId": "ghost"})
    assert resp.json() == {"value": "D1"}

    resp = await client.get("/api/v1/display")
    assert resp.json() == {"value": "D1"}

    await client.put("/api/v1/display", json={"value": "D2"})
    resp = await client.put("/api/v1/display", json={})
    assert resp.json() == {"value": "D1"}


@pytest.mark.asyncio
async def test_put_display_invalid_json(client):
    resp = await client.put("/api/v1/display", content=b"{nope",
                            headers={"content-type": "application/json"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_put_dashboard(client, engine, fake_service):
    await _refresh(engine)
    resp = await client.put("/api/v1/dashboard", json={"index": 7})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "displayId": "D1", "index": 2}
    assert fake_service.writes() == [("D1", 2)]


@pytest.mark.asyncio
async def test_put_dashboard_errors(client, engine, fake_service):
    resp = await client.put("/api/v1/dashboard", json={"index": 1})
    assert resp.status_code == 400  # no displays known yet

    await _refresh(engine)
    resp = await client.put("/api/v1/dashboard", json={"index": "two"})
    assert resp.status_code == 400

    resp = await client.put("/api/v1/dashboard", json={"displayId": "ghost", "index": 0})
    assert resp.status_code == 409

    fake_service.failing.add("displays/D1/activeScreen")
    resp = await client.put("/api/v1/dashboard", json={"displayId": "D1", "index": 1})
    assert resp.status_code == 502
    assert engine.state.dashboard_view("D1")[1] == 0


@pytest.mark.asyncio
async def test_bindings_then_play(client, engine, action_requests):
    await _refresh(engine)
    resp = await client.post("/api/v1/bindings", json={"playBindings": [
        {"screenId": "D1", "dashboardId": "dash1", "actionType": "rest",
         "method": "GET", "path": "/signalk/v1/api/vessels/self"},
        {"dashboardId": "orphan"},
    ]})
    assert resp.status_code == 200
    assert resp.json()["applied"] == 1

    resp = await client.get("/api/v1/bindings")
    assert resp.json()["bindings"]["D1"]["dash1"]["method"] == "GET"

    resp = await client.post("/api/v1/play")
    assert resp.status_code == 200
    data = resp.json()
    assert data["dashboardId"] == "dash1"
    assert data["status"] == 202
    assert str(action_requests[0].url) == "http://host.test:3000/signalk/v1/api/vessels/self"


@pytest.mark.asyncio
async def test_bindings_rejects_non_list(client):
    resp = await client.post("/api/v1/bindings", json={"playBindings": {"a": 1}})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_play_failure_is_502(client, engine):
    await _refresh(engine)
    await client.post("/api/v1/bindings", json={"playBindings": [
        {"screenId": "D1", "dashboardId": "dash1", "actionType": "rest", "method": "PATCH",
         "url": "http://x.test/"},
    ]})
    resp = await client.post("/api/v1/play")
    assert resp.status_code == 502
    assert resp.json()["action"]["method"] == "PATCH"


@pytest.mark.asyncio
async def test_play_without_dashboard(client):
    resp = await client.post("/api/v1/play")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_keys(client):
    resp = await client.get("/api/v1/keys")
    data = resp.json()
    assert data["keyMap"]["115"] == "KEY_VOLUMEUP"
    assert data["last"] is None
    assert data["layout"]


@pytest.mark.asyncio
async def test_autodetect_not_found(client):
    resp = await client.post("/api/v1/autodetect", json={"seconds": 0, "preferById": False})
    assert resp.status_code == 404
    assert resp.json() == {"path": None, "method": "sniff"}
