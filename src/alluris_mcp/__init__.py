"""Driver and MCP server for Alluris USB force and torque gauges."""

from .exceptions import (
    AllurisError,
    DeviceBusyError,
    DeviceNotFoundError,
    DirectoryCapacityError,
    ErrorCode,
    MalformedReplyError,
    OutOfRangeError,
    TransportError,
    TransportFailure,
    error_name,
)
from .gauge import Gauge, Timeouts
from .models import DeviceDescription, DeviceState, MeasurementMode
from .transport import DeviceDirectory, MockTransport, Transport, UsbTransport

__version__ = "0.1.0"
