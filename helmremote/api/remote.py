"""Remote-control API endpoints.

This is the thin FastAPI adapter. It parses HTTP requests, calls the engine,
and maps engine errors to status codes.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from helmremote.core.errors import ActionFailed, ServiceUnavailable
from helmremote.input.keys import KEY_MAP, REMOTE_LAYOUT

router = APIRouter(prefix="/api/v1")


async def _json_body(request: Request) -> dict | None:
    """Parse the body as a JSON object. Empty body -> {}; anything else invalid -> None."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _invalid_json() -> JSONResponse:
    return JSONResponse(content={"error": "invalid JSON"}, status_code=400)


@router.get("/status")
async def status() -> dict:
    """Full engine status: displays, dashboards, health and recent errors."""
    from helmremote.main import get_engine

    return get_engine().snapshot()


@router.get("/display")
async def get_display() -> dict:
    from helmremote.main import get_engine

    return {"value": get_engine().state.active_display_id}


@router.put("/display")
async def put_display(request: Request) -> JSONResponse:
    """Select a display. Unknown ids fall back to the first display."""
    from helmremote.main import get_engine

    body = await _json_body(request)
    if body is None:
        return _invalid_json()
    value = body.get("value", body.get("displayId"))
    engine = get_engine()
    selected = engine.state.set_active_display(None if value is None else str(value))
    return JSONResponse(content={"value": selected})


@router.put("/dashboard")
async def put_dashboard(request: Request) -> JSONResponse:
    """Select a dashboard index on a display (defaults to the active display)."""
    from helmremote.main import get_engine

    body = await _json_body(request)
    if body is None:
        return _invalid_json()
    engine = get_engine()
    display_id = body.get("displayId") or engine.state.active_display_id
    if not display_id:
        return JSONResponse(content={"error": "no displayId"}, status_code=400)
    index = body.get("index")
    if isinstance(index, bool) or not isinstance(index, (int, float)):
        return JSONResponse(content={"error": "invalid index"}, status_code=400)

    try:
        selected = await engine.controller.set_active_dashboard(str(display_id), int(index))
    except ServiceUnavailable as exc:
        return JSONResponse(content={"error": str(exc)}, status_code=502)
    if selected is None:
        return JSONResponse(content={"error": "no dashboards for display", "displayId": display_id},
                            status_code=409)
    return JSONResponse(content={"ok": True, "displayId": display_id, "index": selected})


@router.post("/play")
async def trigger_play() -> JSONResponse:
    """Run the action bound to the current display and dashboard."""
    from helmremote.main import get_engine

    engine = get_engine()
    current = engine.state.current_dashboard()
    if current is None:
        return JSONResponse(content={"error": "no dashboard selected"}, status_code=400)
    display_id, dashboard = current
    action = engine.bindings.get(display_id, dashboard.id)

    try:
        result = await engine.controller.trigger_play()
    except ActionFailed as exc:
        return JSONResponse(content={"error": str(exc), "action": action.to_dict()}, status_code=502)

    return JSONResponse(content={
        "ok": True,
        "displayId": display_id,
        "dashboardId": dashboard.id,
        "action": action.to_dict(),
        "status": result.status if result else None,
    })


@router.post("/autodetect")
async def autodetect(request: Request) -> JSONResponse:
    """Look for the remote now. Body: {"seconds": 6, "minKeys": 1, "preferById": true}."""
    from helmremote.main import get_engine

    body = await _json_body(request)
    if body is None:
        return _invalid_json()
    engine = get_engine()
    try:
        seconds = float(body.get("seconds", engine.config.device.autodetect_seconds))
        min_keys = int(body.get("minKeys", 1))
    except (TypeError, ValueError):
        return JSONResponse(content={"error": "invalid seconds/minKeys"}, status_code=400)
    seconds = max(1.0, min(60.0, seconds))
    min_keys = max(1, min_keys)
    prefer_by_id = body.get("preferById")

    result = await engine.detect(seconds, min_keys,
                                 None if prefer_by_id is None else bool(prefer_by_id))
    if result is None:
        return JSONResponse(content={"path": None, "method": "sniff"}, status_code=404)
    return JSONResponse(content={"path": result.path, "method": result.method})


@router.get("/keys")
async def keys() -> dict:
    """Key code table, the remote's button layout and the last key seen."""
    from helmremote.main import get_engine

    return {
        "keyMap": {str(code): name for code, name in KEY_MAP.items()},
        "layout": REMOTE_LAYOUT,
        "last": get_engine().state.last_key,
    }


@router.get("/bindings")
async def get_bindings() -> dict:
    from helmremote.main import get_engine

    return {"bindings": get_engine().bindings.to_dict()}


@router.post("/bindings")
async def post_bindings(request: Request) -> JSONResponse:
    """Merge play bindings. Body: {"playBindings": [...settings items...]}."""
    from helmremote.main import get_engine

    body = await _json_body(request)
    if body is None:
        return _invalid_json()
    items = body.get("playBindings")
    if not isinstance(items, list):
        return JSONResponse(content={"error": "playBindings must be a list"}, status_code=400)

    bindings = get_engine().bindings
    applied = bindings.merge_settings(items)
    return JSONResponse(content={"ok": True, "applied": applied, "bindings": bindings.to_dict()})
