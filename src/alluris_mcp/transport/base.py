"""Transport interface the command engine depends on.

A transport moves raw fixed-capacity buffers to and from the gauge. It
knows nothing about opcodes; it only reports whether a transfer happened.
Every operation takes an explicit timeout and reports a timeout as a
:class:`~alluris_mcp.exceptions.TransportError` with
``failure == TransportFailure.TIMEOUT``, never as an empty result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..exceptions import TransportError
from ..protocol.framing import FRAME_SIZE


class Transport(ABC):
    """Abstract transport for one gauge."""

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call more than once."""

    @abstractmethod
    def send(self, data: bytes, timeout_ms: int) -> int:
        """Write one frame.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: On timeout or transfer failure.
        """

    @abstractmethod
    def receive(self, capacity: int, timeout_ms: int) -> bytes:
        """Read one frame of at most ``capacity`` bytes.

        Raises:
            TransportError: On timeout, transfer failure or a zero-length read.
        """

    def clear_receive_buffer(self, timeout_ms: int, max_frames: int = 32) -> int:
        """Drain stale frames until a read times out.

        At most ``max_frames`` frames are drained so the wait stays bounded.

        Returns:
            Number of frames discarded.

        Raises:
            TransportError: On any failure other than the expected timeout.
        """
        dropped = 0
        while dropped < max_frames:
            try:
                self.receive(FRAME_SIZE, timeout_ms)
            except TransportError as e:
                if e.timed_out:
                    return dropped
                raise
            dropped += 1
        return dropped

    def __enter__(self) -> Transport:
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
