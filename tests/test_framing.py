"""Tests for frame encoding and decoding."""

import pytest

from alluris_mcp.exceptions import MalformedReplyError, OutOfRangeError
from alluris_mcp.protocol.framing import (
    FRAME_SIZE,
    INT24_MAX,
    INT24_MIN,
    MAX_WORDS,
    Frame,
    decode,
    encode,
    pack_int24,
    unpack_int24,
)


def test_encode_frame_size():
    """Every encoded frame must be exactly 64 bytes."""
    assert len(encode(0x46)) == FRAME_SIZE
    assert len(encode(0x10, 0x03, [1234])) == FRAME_SIZE


def test_encode_header():
    """Opcode, length and selector occupy the first three bytes."""
    frame = encode(0x10, 0x03, [1])
    assert frame[0] == 0x10
    assert frame[1] == 6  # header(3) + one word(3)
    assert frame[2] == 0x03


def test_encode_word_little_endian():
    """Words are signed 24-bit little-endian."""
    frame = encode(0x10, 0x03, [0x123456])
    assert frame[3:6] == bytes([0x56, 0x34, 0x12])

    frame = encode(0x10, 0x04, [-1])
    assert frame[3:6] == b"\xFF\xFF\xFF"


def test_encode_zero_padding():
    """Unused bytes are zero-filled."""
    frame = encode(0x46, 0x01)
    assert frame[3:] == b"\x00" * (FRAME_SIZE - 3)


def test_int24_limits():
    assert unpack_int24(pack_int24(INT24_MAX)) == INT24_MAX
    assert unpack_int24(pack_int24(INT24_MIN)) == INT24_MIN
    assert pack_int24(INT24_MIN) == b"\x00\x00\x80"


def test_int24_out_of_range():
    with pytest.raises(OutOfRangeError):
        pack_int24(INT24_MAX + 1)
    with pytest.raises(OutOfRangeError):
        pack_int24(INT24_MIN - 1)


def test_encode_rejects_bad_header_fields():
    with pytest.raises(OutOfRangeError):
        encode(0x100)
    with pytest.raises(OutOfRangeError):
        encode(0x10, -1)


def test_encode_rejects_too_many_words():
    with pytest.raises(OutOfRangeError):
        encode(0x02, 0, [0] * (MAX_WORDS + 1))


def test_roundtrip():
    """Decoding an encoded frame recovers opcode, selector and values."""
    values = (0, 1, -1, 25412, INT24_MAX, INT24_MIN)
    parsed = decode(0x02, encode(0x02, 0x07, values))
    assert parsed == Frame(opcode=0x02, selector=0x07, values=values)


def test_roundtrip_full_frame():
    """A frame filled with MAX_WORDS values still decodes."""
    values = tuple(range(-10, MAX_WORDS - 10))
    frame = encode(0x02, 0, values)
    assert frame[1] == FRAME_SIZE - 1  # 3 + 20 * 3
    assert decode(0x02, frame).values == values


def test_decode_foreign_opcode():
    """A reply that echoes a different opcode is never accepted."""
    frame = encode(0x08, 0x01, [25412])
    with pytest.raises(MalformedReplyError):
        decode(0x46, frame)


def test_decode_short_buffer():
    with pytest.raises(MalformedReplyError):
        decode(0x46, b"\x46\x03")


def test_decode_length_exceeds_received():
    frame = bytearray(encode(0x46, 0x00, [5]))
    with pytest.raises(MalformedReplyError):
        decode(0x46, bytes(frame[:5]))


def test_decode_length_below_header():
    frame = bytearray(encode(0x46, 0x00))
    frame[1] = 2
    with pytest.raises(MalformedReplyError):
        decode(0x46, bytes(frame))


def test_decode_unaligned_length():
    frame = bytearray(encode(0x46, 0x00, [5]))
    frame[1] = 5
    with pytest.raises(MalformedReplyError):
        decode(0x46, bytes(frame))


def test_malformed_error_keeps_raw_bytes():
    frame = encode(0x08, 0x01)
    with pytest.raises(MalformedReplyError) as exc_info:
        decode(0x46, frame)
    assert exc_info.value.raw == frame


def test_frame_repr():
    """Frame repr should be readable."""
    r = repr(Frame(opcode=0x46, selector=0x03, values=(1, 2)))
    assert "0x46" in r
    assert "0x03" in r
