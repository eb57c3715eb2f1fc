"""Binary input record decoder.

A device node delivers fixed-size little-endian records:

    struct input_event {
        timeval time;   // two native longs: seconds, microseconds
        __u16 type;
        __u16 code;
        __s32 value;
    };

On 64-bit hosts a record is 24 bytes, on 32-bit hosts 16 bytes. Reads may cut
records at any byte, so the decoder keeps the remainder until the next read.
"""

from __future__ import annotations

import struct
from typing import AsyncIterator, Protocol

from helmremote.config import NATIVE_RECORD_SIZE
from helmremote.core.errors import StreamClosed
from helmremote.core.models import RawEvent

RECORD_FORMATS = {
    16: struct.Struct("<iiHHi"),
    24: struct.Struct("<qqHHi"),
}

# Read this many records at once when the source has them.
READ_RECORDS = 64


class ByteSource(Protocol):
    """Port: anything that yields bytes. Returns b"" at end of stream."""

    async def read(self, size: int) -> bytes: ...


class RecordDecoder:
    """Incremental decoder: feed bytes, get back every complete record."""

    def __init__(self, record_size: int = NATIVE_RECORD_SIZE) -> None:
        if record_size not in RECORD_FORMATS:
            raise ValueError(f"unsupported record size {record_size}, expected 16 or 24")
        self._struct = RECORD_FORMATS[record_size]
        self._buffer = bytearray()

    @property
    def record_size(self) -> int:
        return self._struct.size

    @property
    def pending(self) -> int:
        """Bytes of an incomplete record waiting for more data."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[RawEvent]:
        self._buffer.extend(data)
        size = self._struct.size
        complete = len(self._buffer) - len(self._buffer) % size
        events = [
            RawEvent(*fields)
            for fields in self._struct.iter_unpack(bytes(self._buffer[:complete]))
        ]
        del self._buffer[:complete]
        return events


async def read_events(
    source: ByteSource,
    record_size: int = NATIVE_RECORD_SIZE,
) -> AsyncIterator[RawEvent]:
    """Yield RawEvents from ``source`` until it closes.

    Never returns normally: end of stream or a read error raises StreamClosed.
    """
    decoder = RecordDecoder(record_size)
    chunk = decoder.record_size * READ_RECORDS
    while True:
        try:
            data = await source.read(chunk)
        except OSError as exc:
            raise StreamClosed(f"read failed: {exc}", pending=decoder.pending) from exc
        if not data:
            raise StreamClosed("end of stream", pending=decoder.pending)
        for event in decoder.feed(data):
            yield event
