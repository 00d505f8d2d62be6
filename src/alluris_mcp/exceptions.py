"""Exception hierarchy for the Alluris gauge driver.

Every transaction either succeeds or raises exactly one of
:class:`TransportError`, :class:`MalformedReplyError`,
:class:`DeviceBusyError` or :class:`OutOfRangeError`. The device directory
adds :class:`DeviceNotFoundError` and :class:`DirectoryCapacityError`.

Each exception carries an ``ErrorCode`` so callers can log a stable name
via :func:`error_name`.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


class ErrorCode(IntEnum):
    """Classification codes, stable across releases."""

    SUCCESS = 0
    MALFORMED_REPLY = 1
    DEVICE_BUSY = 2
    OUT_OF_RANGE = 3
    TRANSPORT_ERROR = 4
    NOT_FOUND = 5
    CAPACITY_EXCEEDED = 6


class TransportFailure(IntEnum):
    """Underlying transfer failure causes (libusb error numbers)."""

    OTHER = -99
    NO_DEVICE = -4
    TIMEOUT = -7
    PIPE = -9


class AllurisError(Exception):
    """Base exception for all driver errors."""

    code: ErrorCode = ErrorCode.SUCCESS


class TransportError(AllurisError):
    """The transfer primitive failed or timed out.

    The original pyusb exception, when there is one, is chained as
    ``__cause__``.
    """

    code = ErrorCode.TRANSPORT_ERROR

    def __init__(
        self,
        message: str = "USB transfer failed",
        *,
        failure: TransportFailure = TransportFailure.OTHER,
        timeout_ms: int | None = None,
    ) -> None:
        super().__init__(message)
        self.failure = failure
        self.timeout_ms = timeout_ms

    @property
    def timed_out(self) -> bool:
        return self.failure is TransportFailure.TIMEOUT

    def __str__(self) -> str:
        base = super().__str__()
        if self.timed_out and self.timeout_ms is not None:
            return f"{base} (timeout after {self.timeout_ms} ms)"
        return f"{base} ({self.failure.name})"


class MalformedReplyError(AllurisError):
    """Reply header does not match the issued command.

    This should never happen on a healthy link; check EMI and the physical
    connection.
    """

    code = ErrorCode.MALFORMED_REPLY

    def __init__(self, message: str, *, raw: bytes | None = None) -> None:
        super().__init__(message)
        self.raw = raw

    def __str__(self) -> str:
        base = super().__str__()
        if self.raw:
            return f"{base} [{self.raw[:8].hex(' ')}]"
        return base


class DeviceBusyError(AllurisError):
    """Device state does not permit the requested command right now."""

    code = ErrorCode.DEVICE_BUSY

    def __init__(self, message: str = "Device busy", *, opcode: int | None = None) -> None:
        super().__init__(message)
        self.opcode = opcode


class OutOfRangeError(AllurisError):
    """A parameter cannot be represented in its wire field."""

    code = ErrorCode.OUT_OF_RANGE

    def __init__(self, message: str, *, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class DeviceNotFoundError(AllurisError):
    """No connected device matches the requested identity."""

    code = ErrorCode.NOT_FOUND


class DirectoryCapacityError(AllurisError):
    """More matching devices are connected than the directory may list."""

    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, found: int, limit: int) -> None:
        super().__init__(
            f"Found {found} devices but the directory is limited to {limit}; "
            f"raise max_devices"
        )
        self.found = found
        self.limit = limit


_TRANSPORT_NAMES: Final[dict[TransportFailure, str]] = {
    TransportFailure.TIMEOUT: "TRANSPORT_TIMEOUT",
    TransportFailure.PIPE: "TRANSPORT_PIPE",
    TransportFailure.NO_DEVICE: "TRANSPORT_NO_DEVICE",
    TransportFailure.OTHER: "TRANSPORT_ERROR",
}


def error_name(error: AllurisError | ErrorCode | TransportFailure | int) -> str:
    """Map an error classification to a stable human-readable name.

    Negative integers are treated as libusb error numbers, non-negative
    ones as :class:`ErrorCode` values.
    """
    if isinstance(error, TransportError):
        return _TRANSPORT_NAMES[error.failure]
    if isinstance(error, AllurisError):
        return error.code.name
    if isinstance(error, TransportFailure):
        return _TRANSPORT_NAMES[error]
    if isinstance(error, ErrorCode):
        return error.name
    if isinstance(error, int):
        try:
            if error < 0:
                return _TRANSPORT_NAMES[TransportFailure(error)]
            return ErrorCode(error).name
        except ValueError:
            return "UNKNOWN_ERROR"
    raise TypeError(f"Cannot name error of type {type(error).__name__}")
