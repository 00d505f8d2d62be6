"""Device status word.

Bit layout of the 32-bit state word::

    bit  0      reserved
    bit  1      pos_limit_exceeded     force > positive limit
    bit  2      neg_limit_underrun     force < negative limit
    bit  3      some_peak_mode_active
    bit  4      peak_plus_active
    bit  5      peak_minus_active
    bit  6      mem_active
    bits 7-9    reserved
    bit 10      overload
    bit 11      fracture
    bit 12      reserved
    bit 13      mem
    bit 14      mem_conti              continuous memory
    bit 15      reserved
    bit 16      limit_option
    bits 17-22  reserved
    bit 23      measuring
    bits 24-31  reserved

Reserved bits are kept in ``word`` untouched, never rejected.
"""

from __future__ import annotations

from dataclasses import dataclass

WORD_MASK = 0xFFFFFFFF

FLAG_BITS: dict[str, int] = {
    "pos_limit_exceeded": 1,
    "neg_limit_underrun": 2,
    "some_peak_mode_active": 3,
    "peak_plus_active": 4,
    "peak_minus_active": 5,
    "mem_active": 6,
    "overload": 10,
    "fracture": 11,
    "mem": 13,
    "mem_conti": 14,
    "limit_option": 16,
    "measuring": 23,
}

FLAGS_MASK = sum(1 << bit for bit in FLAG_BITS.values())
RESERVED_MASK = WORD_MASK & ~FLAGS_MASK


def _flag(name: str) -> property:
    bit = FLAG_BITS[name]

    def getter(self: DeviceState) -> bool:
        return bool(self.word >> bit & 1)

    getter.__doc__ = f"Bit {bit}."
    return property(getter)


@dataclass(frozen=True)
class DeviceState:
    """Named boolean view over a 32-bit state word."""

    word: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "word", self.word & WORD_MASK)

    pos_limit_exceeded = _flag("pos_limit_exceeded")
    neg_limit_underrun = _flag("neg_limit_underrun")
    some_peak_mode_active = _flag("some_peak_mode_active")
    peak_plus_active = _flag("peak_plus_active")
    peak_minus_active = _flag("peak_minus_active")
    mem_active = _flag("mem_active")
    overload = _flag("overload")
    fracture = _flag("fracture")
    mem = _flag("mem")
    mem_conti = _flag("mem_conti")
    limit_option = _flag("limit_option")
    measuring = _flag("measuring")

    @property
    def reserved_bits(self) -> int:
        """Bits without an assigned meaning, as received."""
        return self.word & RESERVED_MASK

    @classmethod
    def from_flags(cls, reserved: int = 0, **flags: bool) -> DeviceState:
        """Build a state word from named flags plus raw reserved bits."""
        unknown = set(flags) - set(FLAG_BITS)
        if unknown:
            raise ValueError(f"Unknown state flags: {sorted(unknown)}")
        word = reserved & RESERVED_MASK
        for name, value in flags.items():
            if value:
                word |= 1 << FLAG_BITS[name]
        return cls(word)

    def to_dict(self) -> dict[str, bool | int]:
        result: dict[str, bool | int] = {
            name: getattr(self, name) for name in FLAG_BITS
        }
        result["reserved_bits"] = self.reserved_bits
        return result

    def __repr__(self) -> str:
        active = [name for name in FLAG_BITS if getattr(self, name)]
        return f"DeviceState(word=0x{self.word:08X}, active={active})"
