"""Tests for the MCP tool functions against a simulated gauge."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from alluris_mcp.exceptions import DeviceNotFoundError
from alluris_mcp.gauge import Gauge
from alluris_mcp.transport.mock import MockTransport
from simulated_gauge import SimulatedGauge, attach


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            # Remove cached server module so it re-imports with our mock
            sys.modules.pop("alluris_mcp.server", None)
            import alluris_mcp.server as server_mod

    return server_mod


@pytest.fixture
def server():
    return _get_server_module()


@pytest.fixture
def device():
    return SimulatedGauge(serial=25412)


@pytest.fixture
def connected(server, device):
    gauge = Gauge(attach(device, bus=1, address=4))
    with patch.object(server, "_gauge", gauge):
        yield server


def test_tools_require_connection(server):
    with pytest.raises(RuntimeError):
        server.get_value()


def test_get_value(connected, device):
    device.value = 1234
    assert connected.get_value() == {"value": 1234}


def test_get_state_is_structured(connected, device):
    device.measuring = True
    state = connected.get_state()
    assert state["measuring"] is True
    assert state["overload"] is False
    assert state["word"] == 1 << 23


def test_busy_becomes_error_result(connected, device):
    device.measuring = True
    result = connected.start_measurement()
    assert result["error"] == "DEVICE_BUSY"


def test_out_of_range_limit_becomes_error_result(connected, device):
    result = connected.set_limits(pos_limit=1 << 24)
    assert result["error"] == "OUT_OF_RANGE"
    assert device.pos_limit == 1000


def test_set_limits_reads_back(connected):
    assert connected.set_limits(pos_limit=800, neg_limit=-900) == {
        "pos_limit": 800,
        "neg_limit": -900,
    }


def test_set_mode_by_name(connected, device):
    assert connected.set_mode("peak_min") == {"mode": "peak_min"}
    assert connected.get_mode() == {"mode": "peak_min", "value": 3}


def test_set_mode_unknown_name(connected):
    assert connected.set_mode("turbo")["error"] == "OUT_OF_RANGE"


def test_cyclic_poll(connected, device):
    device.samples = [1, 2, 3]
    connected.set_cyclic(True, 3)
    assert connected.poll_measurement(3) == {"values": [1, 2, 3]}


def test_connect_unknown_serial(server):
    directory = MagicMock()
    directory.open.side_effect = DeviceNotFoundError("No gauge with serial number 'P.00000'")
    with patch.object(server, "_directory", directory), patch.object(server, "_gauge", None):
        result = server.connect(serial_number="P.00000")
    assert result["error"] == "NOT_FOUND"


def test_connect_by_serial(server, device):
    directory = MagicMock()
    directory.open.return_value = attach(device, bus=3, address=7)
    with patch.object(server, "_directory", directory), patch.object(server, "_gauge", None):
        result = server.connect(serial_number="P.25412")
        assert server.get_device_info() == {"serial_number": "P.25412", "digits": 4}
        server.disconnect()
    assert result == {"connected": True, "serial_number": "P.25412", "bus": 3, "address": 7}


def test_connect_keeps_no_gauge_when_serial_read_fails(server):
    """A gauge that never answers is closed again and not kept as connected."""
    silent = MockTransport(bus=3, address=7)
    directory = MagicMock()
    directory.open_with_id.return_value = silent
    with patch.object(server, "_directory", directory), patch.object(server, "_gauge", None):
        result = server.connect(bus=3, address=7)
        assert server._gauge is None
    assert result["error"] == "TRANSPORT_TIMEOUT"
    assert not silent.is_open
