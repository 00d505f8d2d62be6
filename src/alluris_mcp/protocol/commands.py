"""Opcode constants and high-level command builders.

Each command is identified by an opcode byte plus a selector byte. The
device echoes both in its reply, so a reply can always be matched to the
command that caused it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..exceptions import OutOfRangeError
from ..models.device import MeasurementMode
from .framing import INT24_MAX, INT24_MIN, MAX_WORDS, encode

# Selector byte of a well-formed "device busy" acknowledgment. Echoed opcode,
# length 3, no payload.
BUSY_SELECTOR = 0xFF


class Opcode(IntEnum):
    """Command opcodes."""

    CYCLIC = 0x01
    POLL = 0x02
    READ_PARAMETER = 0x08
    WRITE_PARAMETER = 0x10
    CONTROL = 0x15
    READ_VALUE = 0x46


class Parameter(IntEnum):
    """Selectors for READ_PARAMETER / WRITE_PARAMETER."""

    SERIAL_NUMBER = 0x01
    DIGITS = 0x02
    POS_LIMIT = 0x03
    NEG_LIMIT = 0x04
    MODE = 0x05


class Value(IntEnum):
    """Selectors for READ_VALUE."""

    RAW = 0x00
    POS_PEAK = 0x01
    NEG_PEAK = 0x02
    STATE = 0x03


class Control(IntEnum):
    """Selectors for CONTROL."""

    TARE = 0x01
    CLEAR_POS_PEAK = 0x02
    CLEAR_NEG_PEAK = 0x03
    START_MEASUREMENT = 0x04
    STOP_MEASUREMENT = 0x05


@dataclass(frozen=True)
class Command:
    """One request frame plus the reply shape it expects."""

    opcode: Opcode
    selector: int
    values: tuple[int, ...] = ()
    reply_words: int = 0

    def to_bytes(self) -> bytes:
        return encode(self.opcode.value, self.selector, self.values)

    def __str__(self) -> str:
        return f"{self.opcode.name}/0x{self.selector:02X}"


def _check_block_length(length: int) -> int:
    if not 1 <= length <= MAX_WORDS:
        raise OutOfRangeError(
            f"Block length must be 1-{MAX_WORDS}, got {length}", value=length
        )
    return length


def _check_limit(limit: int) -> int:
    if not INT24_MIN <= limit <= INT24_MAX:
        raise OutOfRangeError(
            f"Limit must be {INT24_MIN}..{INT24_MAX}, got {limit}", value=limit
        )
    return limit


def build_read_parameter(parameter: Parameter) -> Command:
    return Command(Opcode.READ_PARAMETER, parameter, reply_words=1)


def build_read_value(selector: Value) -> Command:
    """Build a READ_VALUE command. The state word spans two words."""
    words = 2 if selector is Value.STATE else 1
    return Command(Opcode.READ_VALUE, selector, reply_words=words)


def build_control(action: Control) -> Command:
    return Command(Opcode.CONTROL, action)


def build_set_limit(parameter: Parameter, limit: int) -> Command:
    """Build a WRITE_PARAMETER command for one of the two limits.

    Args:
        parameter: ``Parameter.POS_LIMIT`` or ``Parameter.NEG_LIMIT``.
        limit: Signed threshold in raw device units.
    """
    if parameter not in (Parameter.POS_LIMIT, Parameter.NEG_LIMIT):
        raise ValueError(f"Not a limit parameter: {parameter!r}")
    return Command(Opcode.WRITE_PARAMETER, parameter, (_check_limit(limit),))


def build_set_mode(mode: MeasurementMode | int) -> Command:
    """Build a WRITE_PARAMETER command selecting the measurement mode."""
    try:
        mode = MeasurementMode(mode)
    except ValueError:
        raise OutOfRangeError(f"Unknown measurement mode {mode!r}", value=mode) from None
    return Command(Opcode.WRITE_PARAMETER, Parameter.MODE, (mode.value,))


def build_cyclic(enable: bool, length: int) -> Command:
    """Build a CYCLIC command.

    Args:
        enable: Start (True) or stop (False) device-side buffering.
        length: Number of values per block, 1-20.
    """
    return Command(Opcode.CYCLIC, 1 if enable else 0, (_check_block_length(length),))


def build_poll(length: int) -> Command:
    """Build a POLL command fetching one block of ``length`` values."""
    length = _check_block_length(length)
    return Command(Opcode.POLL, 0, (length,), reply_words=length)
