"""helmremote: main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, input, service, queue, storage and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from helmremote.api.monitoring import VERSION
from helmremote.api.monitoring import router as monitoring_router
from helmremote.api.remote import router as remote_router
from helmremote.bus.memory_bus import InMemoryBus
from helmremote.config import AppConfig, load_config
from helmremote.core.bindings import BindingTable
from helmremote.core.controller import RemoteController
from helmremote.core.dispatcher import ActionDispatcher
from helmremote.core.engine import RemoteEngine
from helmremote.core.reconciler import Reconciler
from helmremote.core.state import RemoteControlState
from helmremote.queue.asyncio_queue import AsyncioEventQueue
from helmremote.service.client import DisplayServiceClient
from helmremote.storage.file_storage import FileBindingStorage

log = structlog.get_logger()

# Module-level singletons (set during startup)
_engine: RemoteEngine | None = None
_config: AppConfig | None = None


def get_engine() -> RemoteEngine:
    assert _engine is not None, "Engine not initialized"
    return _engine


def get_config() -> AppConfig:
    assert _config is not None, "Engine not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logger_factory = None
    if config.logging.file:
        logger_factory = structlog.WriteLoggerFactory(
            file=open(config.logging.file, "a", encoding="utf-8"),
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


def build_engine(
    config: AppConfig,
    service_http: httpx.AsyncClient,
    action_http: httpx.AsyncClient,
) -> RemoteEngine:
    """Create every engine component from ``config``."""
    state = RemoteControlState(max_errors=config.state.max_errors)
    bus = InMemoryBus()
    queue = AsyncioEventQueue(max_size=config.queue.max_size)

    bindings = BindingTable(FileBindingStorage(config.bindings.file))
    if config.bindings.items:
        bindings.merge_settings(config.bindings.items)

    service = DisplayServiceClient(
        service_http,
        base_url=config.display_service.base_url,
        token=config.display_service.token,
    )
    dispatcher = ActionDispatcher(action_http, bus,
                                  local_base_url=config.actions.local_base_url)
    reconciler = Reconciler(
        service, state,
        display_interval=config.display_service.display_refresh_seconds,
        index_interval=config.display_service.index_refresh_seconds,
    )
    controller = RemoteController(
        state, service, dispatcher, bindings, bus,
        commands=config.keymap.commands(),
        publish_on=config.device.publish_on,
    )
    return RemoteEngine(config, state, reconciler, controller, queue, bindings, bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _engine, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("engine_starting",
             env=_config.server.env,
             device_path=_config.device.path or None,
             display_service=_config.display_service.base_url)

    async with httpx.AsyncClient(timeout=_config.display_service.timeout_seconds) as service_http, \
            httpx.AsyncClient(timeout=_config.actions.timeout_seconds) as action_http:
        _engine = build_engine(_config, service_http, action_http)
        await _engine.start()

        log.info("server_started",
                 host=_config.server.host,
                 port=_config.server.port)

        yield

        # Shutdown
        await _engine.stop()
    log.info("server_stopped")


app = FastAPI(
    title="helmremote",
    description="Remote control for chartplotter displays and dashboards",
    version=VERSION,
    lifespan=lifespan,
)

app.include_router(remote_router)
app.include_router(monitoring_router)


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    config = load_config()
    uvicorn.run("helmremote.main:app", host=config.server.host, port=config.server.port)
