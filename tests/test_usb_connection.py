"""Tests for the pyusb transport, with the USB device mocked out."""

from unittest.mock import MagicMock, patch

import pytest
import usb.core

from alluris_mcp.exceptions import DeviceNotFoundError, TransportError, TransportFailure
from alluris_mcp.transport.usb_connection import (
    EP_IN,
    EP_OUT,
    UsbTransport,
    classify_usb_error,
)


def _open_transport(device=None) -> UsbTransport:
    device = device or MagicMock(bus=1, address=4)
    device.is_kernel_driver_active.return_value = False
    transport = UsbTransport(device)
    with patch("usb.util.claim_interface"):
        transport.open()
    return transport


def test_classify_timeout():
    assert classify_usb_error(usb.core.USBTimeoutError("timeout", -7)) is TransportFailure.TIMEOUT


def test_classify_backend_codes():
    assert classify_usb_error(usb.core.USBError("pipe", -9)) is TransportFailure.PIPE
    assert classify_usb_error(usb.core.USBError("gone", -4)) is TransportFailure.NO_DEVICE
    assert classify_usb_error(usb.core.USBError("io", -1)) is TransportFailure.OTHER


def test_open_claims_interface():
    device = MagicMock(bus=1, address=4)
    device.is_kernel_driver_active.return_value = True
    transport = UsbTransport(device)
    with patch("usb.util.claim_interface") as claim:
        transport.open()
    device.detach_kernel_driver.assert_called_once_with(0)
    claim.assert_called_once_with(device, 0)
    assert transport.is_open


def test_open_without_device_searches_bus():
    with patch("usb.core.find", return_value=None):
        with pytest.raises(DeviceNotFoundError):
            UsbTransport().open()


def test_open_failure_is_transport_error():
    device = MagicMock(bus=1, address=4)
    device.is_kernel_driver_active.return_value = False
    transport = UsbTransport(device)
    with patch("usb.util.claim_interface", side_effect=usb.core.USBError("busy", -6)):
        with pytest.raises(TransportError) as exc_info:
            transport.open()
    assert isinstance(exc_info.value.__cause__, usb.core.USBError)
    assert not transport.is_open


def test_send_writes_out_endpoint():
    transport = _open_transport()
    transport.device.write.return_value = 64
    assert transport.send(b"\x46\x03\x00" + b"\x00" * 61, 50) == 64
    transport.device.write.assert_called_once()
    assert transport.device.write.call_args.args[0] == EP_OUT
    assert transport.device.write.call_args.kwargs["timeout"] == 50


def test_receive_timeout():
    """A read timeout is reported as such, never as an empty success."""
    transport = _open_transport()
    transport.device.read.side_effect = usb.core.USBTimeoutError("timeout", -7)
    with pytest.raises(TransportError) as exc_info:
        transport.receive(64, 100)
    assert exc_info.value.timed_out
    assert exc_info.value.timeout_ms == 100


def test_zero_length_read_is_an_error():
    transport = _open_transport()
    transport.device.read.return_value = []
    with pytest.raises(TransportError) as exc_info:
        transport.receive(64, 100)
    assert exc_info.value.failure is TransportFailure.OTHER


def test_receive_reads_in_endpoint():
    transport = _open_transport()
    transport.device.read.return_value = [0x46, 0x03, 0x00]
    assert transport.receive(64, 100) == b"\x46\x03\x00"
    transport.device.read.assert_called_once_with(EP_IN, 64, timeout=100)


def test_clear_receive_buffer_drains_until_timeout():
    transport = _open_transport()
    transport.device.read.side_effect = [
        [0x46, 0x06, 0x00, 1, 0, 0],
        [0x46, 0x06, 0x00, 2, 0, 0],
        usb.core.USBTimeoutError("timeout", -7),
    ]
    assert transport.clear_receive_buffer(2) == 2


def test_clear_receive_buffer_propagates_other_errors():
    transport = _open_transport()
    transport.device.read.side_effect = usb.core.USBError("gone", -4)
    with pytest.raises(TransportError) as exc_info:
        transport.clear_receive_buffer(2)
    assert exc_info.value.failure is TransportFailure.NO_DEVICE


def test_io_requires_open():
    transport = UsbTransport(MagicMock())
    with pytest.raises(TransportError):
        transport.send(b"\x00", 50)


def test_close_is_idempotent():
    transport = _open_transport()
    with patch("usb.util.release_interface") as release, patch("usb.util.dispose_resources"):
        transport.close()
        transport.close()
    release.assert_called_once()
    assert not transport.is_open


def test_short_write_is_an_error():
    """A partial transfer never counts as a sent frame."""
    transport = _open_transport()
    transport.device.write.return_value = 10
    with pytest.raises(TransportError) as exc_info:
        transport.send(b"\x46\x03\x00" + b"\x00" * 61, 50)
    assert exc_info.value.failure is TransportFailure.OTHER
    assert exc_info.value.timeout_ms == 50


def test_failed_open_reattaches_kernel_driver():
    device = MagicMock(bus=1, address=4)
    device.is_kernel_driver_active.return_value = True
    transport = UsbTransport(device)
    with patch("usb.util.claim_interface", side_effect=usb.core.USBError("busy", -6)):
        with pytest.raises(TransportError):
            transport.open()
    device.detach_kernel_driver.assert_called_once_with(0)
    device.attach_kernel_driver.assert_called_once_with(0)
    assert not transport.is_open


def test_failed_open_leaves_foreign_driver_alone():
    device = MagicMock(bus=1, address=4)
    device.is_kernel_driver_active.return_value = False
    transport = UsbTransport(device)
    with patch("usb.util.claim_interface", side_effect=usb.core.USBError("busy", -6)):
        with pytest.raises(TransportError):
            transport.open()
    device.attach_kernel_driver.assert_not_called()
