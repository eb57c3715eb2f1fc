"""Health check and monitoring endpoints."""

from __future__ import annotations

import json
from pathlib import Path

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")

VERSION = "0.1.0"

# Load build info once at import time.
_BUILD_INFO_PATH = Path(__file__).parent.parent / "build_info.json"
_BUILD_INFO: dict = {}
if _BUILD_INFO_PATH.exists():
    try:
        _BUILD_INFO = json.loads(_BUILD_INFO_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        pass


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from helmremote.main import get_engine

    engine = get_engine()
    snapshot = engine.snapshot()
    result = {
        "status": snapshot["health"],
        "message": snapshot["status"],
        "version": VERSION,
        "uptime_seconds": snapshot["uptime_seconds"],
        "device_path": snapshot["device_path"],
        "queue_depth": snapshot["queue_depth"],
        "errors": len(snapshot["errors"]),
    }
    result.update(_BUILD_INFO)
    return result


@router.get("/config")
async def effective_config() -> dict:
    """Effective configuration, without secrets."""
    from helmremote.main import get_config

    config = get_config()
    return {
        "device": {
            "path": config.device.path or None,
            "record_size": config.device.record_size,
            "autodetect_seconds": config.device.autodetect_seconds,
            "by_id_autodetect": config.device.by_id_autodetect,
            "publish_on": config.device.publish_on,
        },
        "display_service": {
            "base_url": config.display_service.base_url,
            "has_token": bool(config.display_service.token),
            "display_refresh_seconds": config.display_service.display_refresh_seconds,
            "index_refresh_seconds": config.display_service.index_refresh_seconds,
        },
        "keymap": config.keymap.commands(),
    }
