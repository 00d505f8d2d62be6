"""Typed interpretation of device replies."""

from __future__ import annotations

from ..exceptions import MalformedReplyError
from ..models.device import MeasurementMode
from ..models.state import DeviceState
from .framing import Frame


def parse_int(frame: Frame) -> int:
    """Single signed word: raw values, peaks, limits, digit count."""
    return frame.values[0]


def parse_serial_number(frame: Frame) -> str:
    """Serial numbers are printed as ``P.`` plus five digits."""
    return f"P.{frame.values[0]:05d}"


def parse_mode(frame: Frame) -> MeasurementMode:
    try:
        return MeasurementMode(frame.values[0])
    except ValueError:
        raise MalformedReplyError(
            f"Device reported unknown measurement mode {frame.values[0]}"
        ) from None


def parse_state(frame: Frame) -> DeviceState:
    """Reassemble the 32-bit state word.

    Word 0 holds bits 0-23, word 1 holds bits 24-31 in its low byte.
    """
    low = frame.values[0] & 0xFFFFFF
    high = frame.values[1] & 0xFF
    return DeviceState(low | high << 24)


def split_state(state: DeviceState) -> tuple[int, int]:
    """Inverse of :func:`parse_state`, as signed 24-bit words."""
    low = state.word & 0xFFFFFF
    if low & 0x800000:
        low -= 1 << 24
    return low, state.word >> 24


def parse_block(frame: Frame) -> list[int]:
    """Block of values from a POLL reply."""
    return list(frame.values)
