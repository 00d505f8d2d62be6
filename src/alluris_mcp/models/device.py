"""Measurement mode and device description models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class MeasurementMode(IntEnum):
    """Device-side measurement mode."""

    STANDARD = 0  # 10 Hz sampling
    PEAK = 1  # 900 Hz sampling
    PEAK_MAX = 2  # 900 Hz, maximum detection
    PEAK_MIN = 3  # 900 Hz, minimum detection


@dataclass
class DeviceDescription:
    """A connected gauge that has not been opened.

    ``device`` is the underlying ``usb.core.Device``; ``serial_number`` is
    empty unless the directory was asked to read it.
    """

    product: str = ""
    serial_number: str = ""
    device: Any = field(default=None, repr=False, compare=False)

    @property
    def bus(self) -> int | None:
        return getattr(self.device, "bus", None)

    @property
    def address(self) -> int | None:
        return getattr(self.device, "address", None)

    def to_dict(self) -> dict:
        return {
            "product": self.product,
            "serial_number": self.serial_number,
            "bus": self.bus,
            "address": self.address,
        }
