"""Transport layer: USB access, device directory, and a mock for tests."""

from .base import Transport
from .mock import MockTransport
from .usb_connection import UsbTransport
from .directory import DeviceDirectory
