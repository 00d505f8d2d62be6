"""MCP server entry point for Alluris force gauges.

Exposes the gauge operations as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP

from .exceptions import AllurisError, error_name
from .gauge import Gauge
from .models.device import MeasurementMode
from .transport.directory import DeviceDirectory

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "alluris-gauge",
    instructions="Tools for Alluris USB force and torque gauges",
)

# Global connection state
_gauge: Gauge | None = None
_directory = DeviceDirectory()


def _get_gauge() -> Gauge:
    """Get the active gauge, raising if not connected."""
    if _gauge is None or not _gauge.transport.is_open:
        raise RuntimeError(
            "Not connected to a gauge. Use the 'connect' tool first."
        )
    return _gauge


def _error_dict(e: AllurisError) -> dict[str, str]:
    return {"error": error_name(e), "detail": str(e)}


def _driver_errors(fn: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
    """Turn driver exceptions into an error result for the client."""

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            return fn(*args, **kwargs)
        except AllurisError as e:
            logger.warning("%s failed: %s", fn.__name__, e)
            return _error_dict(e)

    return wrapper


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
@_driver_errors
def list_devices(read_serial: bool = True) -> dict[str, Any]:
    """List connected Alluris gauges.

    Args:
        read_serial: Query each gauge for its serial number (opens each one
                     briefly). Gauges that cannot be opened, such as the one
                     currently connected, are listed with an empty serial.
    """
    devices = _directory.list_devices(read_serial=read_serial)
    return {"devices": [d.to_dict() for d in devices]}


@mcp.tool()
@_driver_errors
def connect(
    serial_number: str | None = None,
    bus: int | None = None,
    address: int | None = None,
) -> dict[str, Any]:
    """Open a gauge by serial number (e.g. "P.25412") or by USB bus/address.

    Without arguments the first gauge found is opened.
    """
    global _gauge
    if _gauge is not None and _gauge.transport.is_open:
        return {"connected": True, "message": "Already connected"}

    if serial_number is not None:
        transport = _directory.open(serial_number)
    elif bus is not None and address is not None:
        transport = _directory.open_with_id(bus, address)
    else:
        devices = _directory.list_devices()
        if not devices:
            return {"error": "NOT_FOUND", "detail": "No gauge connected"}
        transport = _directory.open_with_id(devices[0].bus, devices[0].address)

    gauge = Gauge(transport)
    try:
        serial = gauge.serial_number()
    except AllurisError:
        gauge.close()
        raise
    _gauge = gauge
    return {
        "connected": True,
        "serial_number": serial,
        "bus": transport.bus,
        "address": transport.address,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the gauge."""
    global _gauge
    if _gauge is not None:
        _gauge.close()
        _gauge = None
    return {"disconnected": True}


@mcp.tool()
@_driver_errors
def get_device_info() -> dict[str, Any]:
    """Read serial number and display digit count."""
    gauge = _get_gauge()
    return {"serial_number": gauge.serial_number(), "digits": gauge.digits()}


# ─── MEASUREMENT TOOLS ────────────────────────────────────────────────

@mcp.tool()
@_driver_errors
def get_value() -> dict[str, Any]:
    """Read the current raw measurement value."""
    return {"value": _get_gauge().raw_value()}


@mcp.tool()
@_driver_errors
def get_peaks() -> dict[str, Any]:
    """Read the positive and negative raw peak values."""
    gauge = _get_gauge()
    return {"pos_peak": gauge.raw_pos_peak(), "neg_peak": gauge.raw_neg_peak()}


@mcp.tool()
@_driver_errors
def get_state() -> dict[str, Any]:
    """Read the device status flags."""
    state = _get_gauge().read_state()
    result = state.to_dict()
    result["word"] = state.word
    return result


@mcp.tool()
@_driver_errors
def tare() -> dict[str, Any]:
    """Zero the gauge at the current load."""
    _get_gauge().tare()
    return {"tared": True}


@mcp.tool()
@_driver_errors
def clear_peaks(positive: bool = True, negative: bool = True) -> dict[str, Any]:
    """Reset the stored peak values.

    Args:
        positive: Clear the positive peak.
        negative: Clear the negative peak.
    """
    gauge = _get_gauge()
    if positive:
        gauge.clear_pos_peak()
    if negative:
        gauge.clear_neg_peak()
    return {"cleared_positive": positive, "cleared_negative": negative}


@mcp.tool()
@_driver_errors
def start_measurement() -> dict[str, Any]:
    """Start a measurement. Fails with DEVICE_BUSY if one is running."""
    _get_gauge().start_measurement()
    return {"measuring": True}


@mcp.tool()
@_driver_errors
def stop_measurement() -> dict[str, Any]:
    """Stop the running measurement."""
    _get_gauge().stop_measurement()
    return {"measuring": False}


@mcp.tool()
@_driver_errors
def set_cyclic(enable: bool, length: int = 19) -> dict[str, Any]:
    """Enable or disable cyclic measurement.

    Args:
        enable: Start or stop device-side buffering.
        length: Values per block (1-20).
    """
    _get_gauge().cyclic_measurement(enable, length)
    return {"cyclic": enable, "length": length}


@mcp.tool()
@_driver_errors
def poll_measurement(length: int = 19) -> dict[str, Any]:
    """Fetch one block of buffered values (cyclic measurement must be on).

    Args:
        length: Values to fetch (1-20).
    """
    return {"values": _get_gauge().poll_measurement(length)}


# ─── CONFIGURATION TOOLS ──────────────────────────────────────────────

@mcp.tool()
@_driver_errors
def get_limits() -> dict[str, Any]:
    """Read the positive and negative limit thresholds."""
    gauge = _get_gauge()
    return {"pos_limit": gauge.get_pos_limit(), "neg_limit": gauge.get_neg_limit()}


@mcp.tool()
@_driver_errors
def set_limits(
    pos_limit: int | None = None, neg_limit: int | None = None
) -> dict[str, Any]:
    """Write one or both limit thresholds (raw device units)."""
    gauge = _get_gauge()
    if pos_limit is not None:
        gauge.set_pos_limit(pos_limit)
    if neg_limit is not None:
        gauge.set_neg_limit(neg_limit)
    return {"pos_limit": gauge.get_pos_limit(), "neg_limit": gauge.get_neg_limit()}


@mcp.tool()
@_driver_errors
def get_mode() -> dict[str, Any]:
    """Read the measurement mode."""
    mode = _get_gauge().get_mode()
    return {"mode": mode.name.lower(), "value": mode.value}


@mcp.tool()
@_driver_errors
def set_mode(mode: str) -> dict[str, Any]:
    """Select the measurement mode.

    Args:
        mode: One of "standard", "peak", "peak_max", "peak_min".
    """
    try:
        selected = MeasurementMode[mode.upper()]
    except KeyError:
        valid = [m.name.lower() for m in MeasurementMode]
        return {"error": "OUT_OF_RANGE", "detail": f"Unknown mode '{mode}'. Valid: {valid}"}
    _get_gauge().set_mode(selected)
    return {"mode": selected.name.lower()}


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
