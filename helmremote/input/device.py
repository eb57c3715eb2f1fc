"""Non-blocking reader for a device node.

The file descriptor is opened with O_NONBLOCK and waited on with the event
loop's reader callbacks, so a pending read costs nothing and ``close()`` wakes
it immediately with end-of-stream.
"""

from __future__ import annotations

import asyncio
import os

import structlog

from helmremote.core.errors import DeviceUnavailable

log = structlog.get_logger()


class DeviceStream:
    """ByteSource over a device node. Read-only."""

    def __init__(self, path: str, fd: int, loop: asyncio.AbstractEventLoop) -> None:
        self.path = path
        self._fd = fd
        self._loop = loop
        self._closed = False
        self._watching = False
        self._waiter: asyncio.Future[None] | None = None

    @classmethod
    async def open(cls, path: str) -> DeviceStream:
        try:
            fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            raise DeviceUnavailable(f"cannot open {path}: {exc}") from exc
        log.debug("device_opened", path=path)
        return cls(path, fd, asyncio.get_running_loop())

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int) -> bytes:
        while not self._closed:
            try:
                return os.read(self._fd, size)
            except BlockingIOError:
                pass
            self._waiter = self._loop.create_future()
            self._loop.add_reader(self._fd, self._wake)
            self._watching = True
            try:
                await self._waiter
            finally:
                self._unwatch()
                self._waiter = None
        return b""

    def _wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)

    def _unwatch(self) -> None:
        if self._watching:
            self._loop.remove_reader(self._fd)
            self._watching = False

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unwatch()
        os.close(self._fd)
        self._wake()
        log.debug("device_closed", path=self.path)
