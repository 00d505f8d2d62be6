"""USB connection to an Alluris gauge.

Uses ``pyusb`` on top of libusb. The gauge is a vendor-class device; we
communicate on interface 0 with interrupt endpoints 0x81 (IN) and 0x01 (OUT).
"""

from __future__ import annotations

import logging

import usb.core
import usb.util

from ..exceptions import DeviceNotFoundError, TransportError, TransportFailure
from ..protocol.framing import FRAME_SIZE
from .base import Transport

logger = logging.getLogger(__name__)

VENDOR_ID = 0x04D8
PRODUCT_ID = 0xFC30
INTERFACE = 0
EP_IN = 0x81
EP_OUT = 0x01

_LIBUSB_FAILURES = {
    TransportFailure.NO_DEVICE.value: TransportFailure.NO_DEVICE,
    TransportFailure.TIMEOUT.value: TransportFailure.TIMEOUT,
    TransportFailure.PIPE.value: TransportFailure.PIPE,
}


def classify_usb_error(error: usb.core.USBError) -> TransportFailure:
    """Map a pyusb exception onto a transport failure kind."""
    if isinstance(error, usb.core.USBTimeoutError):
        return TransportFailure.TIMEOUT
    code = getattr(error, "backend_error_code", None)
    return _LIBUSB_FAILURES.get(code, TransportFailure.OTHER)


def read_string(device, index: int) -> str:
    """Read a string descriptor, returning "" when it is absent."""
    if not index:
        return ""
    return usb.util.get_string(device, index) or ""


class UsbTransport(Transport):
    """Manages the USB connection to one gauge.

    Usage::

        with UsbTransport(device) as transport:
            transport.send(frame, 50)
            reply = transport.receive(64, 100)
    """

    def __init__(
        self,
        device=None,
        *,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        interface: int = INTERFACE,
        ep_in: int = EP_IN,
        ep_out: int = EP_OUT,
    ) -> None:
        self._device = device
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._interface = interface
        self._ep_in = ep_in
        self._ep_out = ep_out
        self._connected = False

    @property
    def is_open(self) -> bool:
        return self._connected

    @property
    def device(self):
        """The underlying ``usb.core.Device``, or None before lookup."""
        return self._device

    @property
    def bus(self) -> int | None:
        return getattr(self._device, "bus", None)

    @property
    def address(self) -> int | None:
        return getattr(self._device, "address", None)

    def open(self) -> None:
        """Claim the gauge's interface.

        Raises:
            DeviceNotFoundError: If no device was given and none is connected.
            TransportError: If the device cannot be claimed.
        """
        if self._connected:
            return

        if self._device is None:
            self._device = usb.core.find(
                idVendor=self._vendor_id, idProduct=self._product_id
            )
            if self._device is None:
                raise DeviceNotFoundError(
                    f"No Alluris device ({self._vendor_id:#06x}:{self._product_id:#06x}) found"
                )

        dev = self._device
        detached = False
        try:
            try:
                if dev.is_kernel_driver_active(self._interface):
                    dev.detach_kernel_driver(self._interface)
                    detached = True
            except NotImplementedError:
                # Not supported on every platform backend
                pass
            try:
                dev.get_active_configuration()
            except usb.core.USBError:
                dev.set_configuration()
            usb.util.claim_interface(dev, self._interface)
        except usb.core.USBError as e:
            if detached:
                self._reattach_kernel_driver()
            raise TransportError(
                f"Could not open device on bus {self.bus} address {self.address}: {e}",
                failure=classify_usb_error(e),
            ) from e

        self._connected = True
        logger.info("Opened gauge on bus %s address %s", self.bus, self.address)

    def _reattach_kernel_driver(self) -> None:
        try:
            self._device.attach_kernel_driver(self._interface)
        except usb.core.USBError as e:
            logger.warning("Could not reattach kernel driver: %s", e)

    def close(self) -> None:
        """Release the interface and libusb resources."""
        if not self._connected:
            return

        try:
            usb.util.release_interface(self._device, self._interface)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._connected = False
            logger.info("Closed gauge on bus %s address %s", self.bus, self.address)

    def _require_open(self) -> None:
        if not self._connected:
            raise TransportError(
                "Device is not open", failure=TransportFailure.NO_DEVICE
            )

    def send(self, data: bytes, timeout_ms: int) -> int:
        self._require_open()
        if len(data) > FRAME_SIZE:
            raise ValueError(f"Frame must be at most {FRAME_SIZE} bytes, got {len(data)}")

        try:
            written = self._device.write(self._ep_out, data, timeout=timeout_ms)
        except usb.core.USBError as e:
            raise TransportError(
                f"Write to endpoint {self._ep_out:#04x} failed: {e}",
                failure=classify_usb_error(e),
                timeout_ms=timeout_ms,
            ) from e

        if written != len(data):
            raise TransportError(
                f"Short write to endpoint {self._ep_out:#04x}: {written} of {len(data)} bytes",
                failure=TransportFailure.OTHER,
                timeout_ms=timeout_ms,
            )
        logger.debug("TX %s", bytes(data[:16]).hex(" "))
        return written

    def receive(self, capacity: int, timeout_ms: int) -> bytes:
        self._require_open()
        try:
            data = bytes(self._device.read(self._ep_in, capacity, timeout=timeout_ms))
        except usb.core.USBError as e:
            raise TransportError(
                f"Read from endpoint {self._ep_in:#04x} failed: {e}",
                failure=classify_usb_error(e),
                timeout_ms=timeout_ms,
            ) from e

        if not data:
            raise TransportError(
                f"Zero-length read from endpoint {self._ep_in:#04x}",
                failure=TransportFailure.OTHER,
            )
        logger.debug("RX %s", data[:16].hex(" "))
        return data
