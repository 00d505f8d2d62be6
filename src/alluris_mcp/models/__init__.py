"""Data models for device state, measurement modes and device descriptions."""

from .device import DeviceDescription, MeasurementMode
from .state import DeviceState
