"""Discovery of connected gauges.

Devices are matched by USB vendor/product id. Reading a serial number
requires a transaction with the gauge, so the device is opened briefly and
closed again before the listing returns.
"""

from __future__ import annotations

import logging
from typing import Callable

import usb.core

from ..exceptions import AllurisError, DeviceNotFoundError, DirectoryCapacityError
from ..gauge import Gauge
from ..models.device import DeviceDescription
from .usb_connection import PRODUCT_ID, VENDOR_ID, UsbTransport, read_string

logger = logging.getLogger(__name__)

MAX_DEVICES = 4


class DeviceDirectory:
    """Enumerates gauges and opens them by serial number or bus identity."""

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        max_devices: int = MAX_DEVICES,
        find: Callable = usb.core.find,
        transport_factory: Callable[..., UsbTransport] = UsbTransport,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self.max_devices = max_devices
        self._find = find
        self._transport_factory = transport_factory

    def _candidates(self) -> list:
        devices = list(
            self._find(
                find_all=True, idVendor=self._vendor_id, idProduct=self._product_id
            )
        )
        if len(devices) > self.max_devices:
            raise DirectoryCapacityError(len(devices), self.max_devices)
        return devices

    def _read_serial(self, device) -> str:
        transport = self._transport_factory(device)
        transport.open()
        try:
            return Gauge(transport).serial_number()
        finally:
            transport.close()

    def list_devices(self, read_serial: bool = False) -> list[DeviceDescription]:
        """Describe every connected gauge without leaving any of them open.

        Args:
            read_serial: Also query each device for its serial number. A device
                that cannot be opened or queried (claimed elsewhere, busy) is
                listed with an empty serial number.

        Raises:
            DirectoryCapacityError: More than ``max_devices`` gauges are connected.
        """
        descriptions = []
        for device in self._candidates():
            description = DeviceDescription(
                product=read_string(device, device.iProduct),
                device=device,
            )
            if read_serial:
                try:
                    description.serial_number = self._read_serial(device)
                except AllurisError as e:
                    logger.warning(
                        "Could not read serial number on bus %s address %s: %s",
                        description.bus,
                        description.address,
                        e,
                    )
            logger.debug(
                "Found %r %s on bus %s address %s",
                description.product,
                description.serial_number or "(serial not read)",
                description.bus,
                description.address,
            )
            descriptions.append(description)
        return descriptions

    def open(self, serial_number: str) -> UsbTransport:
        """Open the gauge whose serial number matches exactly.

        Raises:
            DeviceNotFoundError: No connected gauge reported this serial number.
        """
        for description in self.list_devices(read_serial=True):
            if serial_number and description.serial_number == serial_number:
                transport = self._transport_factory(description.device)
                transport.open()
                return transport
        raise DeviceNotFoundError(f"No gauge with serial number {serial_number!r}")

    def open_with_id(self, bus: int, address: int) -> UsbTransport:
        """Open the gauge at a bus/address without reading serial numbers.

        Raises:
            DeviceNotFoundError: Nothing matching is connected there.
        """
        device = self._find(
            idVendor=self._vendor_id,
            idProduct=self._product_id,
            custom_match=lambda d: d.bus == bus and d.address == address,
        )
        if device is None:
            raise DeviceNotFoundError(f"No gauge on bus {bus} address {address}")
        transport = self._transport_factory(device)
        transport.open()
        return transport

