"""Tests for the play action dispatcher."""

from __future__ import annotations

import json

import httpx
import pytest

from helmremote.bus.memory_bus import InMemoryBus
from helmremote.core.dispatcher import ActionDispatcher
from helmremote.core.errors import ActionFailed
from helmremote.core.models import Action


@pytest.fixture
def bus() -> InMemoryBus:
    return InMemoryBus()


@pytest.fixture
def dispatcher(action_http, bus) -> ActionDispatcher:
    return ActionDispatcher(action_http, bus, local_base_url="http://host.test:3000/")


@pytest.mark.asyncio
async def test_rest_get_absolute_url(dispatcher, action_requests):
    result = await dispatcher.execute(Action(
        kind="rest", method="get", url="http://lights.test/deck", params={"on": "1"},
    ))
    assert result.status == 202
    assert result.summary == "Play REST GET http://lights.test/deck -> 202"
    (request,) = action_requests
    assert request.method == "GET"
    assert request.url.params["on"] == "1"
    assert request.content == b""


@pytest.mark.asyncio
async def test_rest_post_local_path_with_default_body(dispatcher, action_requests):
    await dispatcher.execute(Action(kind="rest", method="POST", path="signalk/v1/api/horn"))
    (request,) = action_requests
    assert str(request.url) == "http://host.test:3000/signalk/v1/api/horn"
    assert json.loads(request.content) == {}


@pytest.mark.asyncio
async def test_rest_without_url_or_path_hits_local_root(dispatcher, action_requests):
    await dispatcher.execute(Action(kind="rest"))
    assert str(action_requests[0].url) == "http://host.test:3000/"


@pytest.mark.asyncio
async def test_rest_unsupported_method(dispatcher, action_requests):
    with pytest.raises(ActionFailed):
        await dispatcher.execute(Action(kind="rest", method="DELETE", url="http://x.test/"))
    assert action_requests == []


@pytest.mark.asyncio
async def test_rest_transport_error(bus):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = ActionDispatcher(client, bus)
    with pytest.raises(ActionFailed) as info:
        await dispatcher.execute(Action(kind="rest", url="http://down.test/"))
    assert "connection refused" in str(info.value)


@pytest.mark.asyncio
async def test_signalk_publishes_value(dispatcher, bus):
    result = await dispatcher.execute(Action(kind="signalk", path="steering.autopilot.state", value="standby"))
    assert result.summary == "Play SK write: steering.autopilot.state"
    assert bus.get("steering.autopilot.state") == "standby"
    assert "timestamp" in bus.snapshot()["steering.autopilot.state"]


@pytest.mark.asyncio
async def test_none_action_does_nothing(dispatcher, bus, action_requests):
    assert await dispatcher.execute(Action()) is None
    assert action_requests == []
    assert bus.published == 0
