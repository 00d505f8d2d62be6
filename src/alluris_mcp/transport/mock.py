"""Mock transport for testing without hardware.

Responses are queued per write: each call to :meth:`MockTransport.send`
moves the next queued response (or the callback's answer) into the inbound
buffer, where :meth:`~MockTransport.receive` picks it up. Frames placed with
:meth:`~MockTransport.inject_stale` are readable immediately and are what
the mandatory flush at the start of a transaction is expected to discard.

Example::

    mock = MockTransport()
    mock.add_response(encode(Opcode.CONTROL, Control.TARE))
    gauge = Gauge(mock)
    gauge.tare()
    assert mock.send_count == 1
"""

from __future__ import annotations

from collections import deque
from typing import Callable

from ..exceptions import TransportError, TransportFailure
from .base import Transport


class MockTransport(Transport):
    """In-memory transport that records writes and replays responses.

    Attributes:
        written_data: All frames written, oldest first.
        send_count: Number of ``send`` calls, including failed ones.
        receive_count: Number of ``receive`` calls, including timeouts.
    """

    def __init__(self, *, bus: int = 1, address: int = 1) -> None:
        self.bus = bus
        self.address = address
        self._is_open = True
        self._responses: deque[bytes] = deque()
        self._inbound: deque[bytes] = deque()
        self._written_data: list[bytes] = []
        self._response_callback: Callable[[bytes], bytes | None] | None = None
        self._send_failure: TransportFailure | None = None
        self.send_count = 0
        self.receive_count = 0

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def written_data(self) -> list[bytes]:
        return self._written_data.copy()

    @property
    def last_written(self) -> bytes | None:
        return self._written_data[-1] if self._written_data else None

    @property
    def transfer_count(self) -> int:
        return self.send_count + self.receive_count

    def add_response(self, response: bytes) -> None:
        """Queue a response delivered after the next write."""
        self._responses.append(bytes(response))

    def add_responses(self, *responses: bytes) -> None:
        for response in responses:
            self.add_response(response)

    def inject_stale(self, frame: bytes) -> None:
        """Make a frame readable right away, as if left over from earlier."""
        self._inbound.append(bytes(frame))

    def set_response_callback(
        self,
        callback: Callable[[bytes], bytes | None] | None,
    ) -> None:
        """Generate responses from written frames.

        If the callback returns None, the next queued response is used.
        """
        self._response_callback = callback

    def fail_next_send(self, failure: TransportFailure) -> None:
        self._send_failure = failure

    def open(self) -> None:
        self._is_open = True

    def close(self) -> None:
        self._is_open = False

    def send(self, data: bytes, timeout_ms: int) -> int:
        self.send_count += 1
        if not self._is_open:
            raise TransportError("Mock transport not open", failure=TransportFailure.NO_DEVICE)
        if self._send_failure is not None:
            failure, self._send_failure = self._send_failure, None
            raise TransportError("Mock send failure", failure=failure, timeout_ms=timeout_ms)

        self._written_data.append(bytes(data))

        response = None
        if self._response_callback:
            response = self._response_callback(bytes(data))
        if response is None and self._responses:
            response = self._responses.popleft()
        if response is not None:
            self._inbound.append(response)
        return len(data)

    def receive(self, capacity: int, timeout_ms: int) -> bytes:
        self.receive_count += 1
        if not self._is_open:
            raise TransportError("Mock transport not open", failure=TransportFailure.NO_DEVICE)
        if not self._inbound:
            raise TransportError(
                "No mock response available",
                failure=TransportFailure.TIMEOUT,
                timeout_ms=timeout_ms,
            )
        return self._inbound.popleft()[:capacity]

    def assert_write_count(self, expected: int) -> None:
        actual = len(self._written_data)
        if actual != expected:
            raise AssertionError(f"Write count mismatch: expected {expected}, got {actual}")
