"""Frame builder and parser for 64-byte interrupt transfers.

Frame layout (command and reply share it)::

    +--------+--------+----------+-----------------------------+---------+
    | Opcode | Length | Selector |  n x signed 24-bit words    | Padding |
    | 1 byte | 1 byte | 1 byte   |  3n bytes, little-endian    | to 64 B |
    +--------+--------+----------+-----------------------------+---------+

- Length: number of meaningful bytes, header included (3 + 3n)
- Selector: sub-command on the way out, echoed back in the reply
- Padding: zero bytes to fill the 64-byte buffer

There is no checksum; integrity rests on the echoed opcode, the length
field and the selector echo.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..exceptions import MalformedReplyError, OutOfRangeError

FRAME_SIZE = 64
HEADER_SIZE = 3
WORD_SIZE = 3
MAX_WORDS = (FRAME_SIZE - HEADER_SIZE) // WORD_SIZE  # 20

INT24_MIN = -(1 << 23)
INT24_MAX = (1 << 23) - 1


@dataclass(frozen=True)
class Frame:
    """A parsed protocol frame."""

    opcode: int
    selector: int
    values: tuple[int, ...] = field(default=())

    def __repr__(self) -> str:
        return (
            f"Frame(opcode=0x{self.opcode:02X}, selector=0x{self.selector:02X}, "
            f"values={list(self.values)})"
        )


def pack_int24(value: int) -> bytes:
    """Encode a signed 24-bit word, little-endian two's complement."""
    if not INT24_MIN <= value <= INT24_MAX:
        raise OutOfRangeError(
            f"Value {value} does not fit a signed 24-bit field "
            f"({INT24_MIN}..{INT24_MAX})",
            value=value,
        )
    return (value & 0xFFFFFF).to_bytes(WORD_SIZE, "little")


def unpack_int24(data: bytes) -> int:
    """Decode a signed 24-bit little-endian word."""
    return int.from_bytes(data[:WORD_SIZE], "little", signed=True)


def encode(opcode: int, selector: int = 0, values: tuple[int, ...] | list[int] = ()) -> bytes:
    """Build a 64-byte command frame.

    Raises:
        OutOfRangeError: If opcode or selector is not a byte, if a value does
            not fit 24 bits, or if more than ``MAX_WORDS`` values are given.
    """
    if not 0 <= opcode <= 0xFF:
        raise OutOfRangeError(f"Opcode must be 0-255, got {opcode}", value=opcode)
    if not 0 <= selector <= 0xFF:
        raise OutOfRangeError(f"Selector must be 0-255, got {selector}", value=selector)
    if len(values) > MAX_WORDS:
        raise OutOfRangeError(
            f"At most {MAX_WORDS} words fit in one frame, got {len(values)}",
            value=len(values),
        )

    body = b"".join(pack_int24(v) for v in values)
    length = HEADER_SIZE + len(body)
    frame = bytes([opcode, length, selector]) + body
    return frame + b"\x00" * (FRAME_SIZE - length)


def decode(expected_opcode: int, data: bytes) -> Frame:
    """Parse and validate a received frame.

    Only the structural header is checked here: the echoed opcode and a
    consistent length field. Per-command expectations (selector echo, word
    count) are the caller's.

    Raises:
        MalformedReplyError: On short buffers, a foreign opcode or an
            inconsistent length field.
    """
    data = bytes(data)
    if len(data) < HEADER_SIZE:
        raise MalformedReplyError(
            f"Reply too short: {len(data)} bytes", raw=data
        )

    opcode, length, selector = data[0], data[1], data[2]
    if opcode != expected_opcode:
        raise MalformedReplyError(
            f"Reply opcode 0x{opcode:02X} does not echo command 0x{expected_opcode:02X}",
            raw=data,
        )
    if length < HEADER_SIZE or length > len(data) or length > FRAME_SIZE:
        raise MalformedReplyError(
            f"Reply length field {length} inconsistent with {len(data)} received bytes",
            raw=data,
        )
    if (length - HEADER_SIZE) % WORD_SIZE:
        raise MalformedReplyError(
            f"Reply length field {length} is not word aligned", raw=data
        )

    values = tuple(
        unpack_int24(data[offset : offset + WORD_SIZE])
        for offset in range(HEADER_SIZE, length, WORD_SIZE)
    )
    return Frame(opcode=opcode, selector=selector, values=values)
