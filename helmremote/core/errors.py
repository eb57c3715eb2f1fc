"""Engine error kinds."""

from __future__ import annotations


class RemoteError(Exception):
    """Base class for all engine errors."""


class DeviceUnavailable(RemoteError):
    """The input device cannot be opened or read."""


class AutodetectFailed(RemoteError):
    """No candidate device showed key activity inside the detection window."""


class ServiceUnavailable(RemoteError):
    """A Display Service read or write failed."""


class ActionFailed(RemoteError):
    """A dispatched play action failed."""


class StreamClosed(RemoteError):
    """The device byte stream ended or could not be read.

    ``pending`` is the number of bytes of an incomplete record still buffered
    when the stream closed.
    """

    def __init__(self, reason: str, pending: int = 0) -> None:
        super().__init__(reason)
        self.reason = reason
        self.pending = pending
