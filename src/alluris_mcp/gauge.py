"""Command engine for one Alluris gauge.

Every operation is exactly one transaction::

    flush stale input -> encode -> send -> receive -> decode -> classify

No operation retries, caches or runs in the background. A failed
transaction leaves the device state unknown; the flush at the start of the
next transaction keeps a late reply from being taken for the new one.

Usage::

    directory = DeviceDirectory()
    with Gauge(directory.open("P.25412")) as gauge:
        gauge.tare()
        print(gauge.raw_value())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import DeviceBusyError, MalformedReplyError
from .models.device import MeasurementMode
from .models.state import DeviceState
from .protocol.commands import (
    BUSY_SELECTOR,
    Command,
    Control,
    Parameter,
    Value,
    build_control,
    build_cyclic,
    build_poll,
    build_read_parameter,
    build_read_value,
    build_set_limit,
    build_set_mode,
)
from .protocol.framing import FRAME_SIZE, Frame, decode
from .protocol.parser import (
    parse_block,
    parse_int,
    parse_mode,
    parse_serial_number,
    parse_state,
)

if TYPE_CHECKING:
    from .transport.base import Transport

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT_MS = 50
DEFAULT_RECEIVE_TIMEOUT_MS = 100
DEFAULT_FLUSH_TIMEOUT_MS = 2


@dataclass(frozen=True)
class Timeouts:
    """Per-transaction timeouts in milliseconds."""

    send_ms: int = DEFAULT_SEND_TIMEOUT_MS
    receive_ms: int = DEFAULT_RECEIVE_TIMEOUT_MS
    flush_ms: int = DEFAULT_FLUSH_TIMEOUT_MS


class Gauge:
    """Typed operations on an open transport.

    A ``Gauge`` must not be shared between threads; transactions on one
    transport are strictly sequential.
    """

    def __init__(self, transport: Transport, timeouts: Timeouts | None = None) -> None:
        self._transport = transport
        self.timeouts = timeouts or Timeouts()

    @property
    def transport(self) -> Transport:
        return self._transport

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> Gauge:
        if not self._transport.is_open:
            self._transport.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ─── TRANSACTION ─────────────────────────────────────────────────

    def transact(self, command: Command, timeouts: Timeouts | None = None) -> Frame:
        """Run one command/reply exchange.

        Raises:
            TransportError: Flush, send or receive failed or timed out.
            MalformedReplyError: The reply does not belong to ``command``.
            DeviceBusyError: The device refused ``command`` in its current state.
        """
        t = timeouts or self.timeouts
        frame = command.to_bytes()

        dropped = self._transport.clear_receive_buffer(t.flush_ms)
        if dropped:
            logger.debug("Discarded %d stale frame(s) before %s", dropped, command)

        self._transport.send(frame, t.send_ms)
        raw = self._transport.receive(FRAME_SIZE, t.receive_ms)

        try:
            reply = decode(command.opcode, raw)
            if reply.selector == BUSY_SELECTOR and not reply.values:
                raise DeviceBusyError(
                    f"Device busy, refused {command}", opcode=command.opcode
                )
            if reply.selector != command.selector:
                raise MalformedReplyError(
                    f"Reply selector 0x{reply.selector:02X} does not echo {command}",
                    raw=raw,
                )
            if len(reply.values) != command.reply_words:
                raise MalformedReplyError(
                    f"Expected {command.reply_words} word(s) for {command}, "
                    f"got {len(reply.values)}",
                    raw=raw,
                )
        except MalformedReplyError as e:
            logger.warning("Malformed reply to %s: %s", command, e)
            raise

        logger.debug("%s -> %r", command, reply)
        return reply

    # ─── IDENTIFICATION ──────────────────────────────────────────────

    def serial_number(self, timeouts: Timeouts | None = None) -> str:
        """Serial number, e.g. ``"P.25412"``."""
        reply = self.transact(build_read_parameter(Parameter.SERIAL_NUMBER), timeouts)
        return parse_serial_number(reply)

    def digits(self, timeouts: Timeouts | None = None) -> int:
        """Number of decimal digits the gauge displays."""
        return parse_int(self.transact(build_read_parameter(Parameter.DIGITS), timeouts))

    # ─── VALUES ──────────────────────────────────────────────────────

    def raw_value(self, timeouts: Timeouts | None = None) -> int:
        return parse_int(self.transact(build_read_value(Value.RAW), timeouts))

    def raw_pos_peak(self, timeouts: Timeouts | None = None) -> int:
        return parse_int(self.transact(build_read_value(Value.POS_PEAK), timeouts))

    def raw_neg_peak(self, timeouts: Timeouts | None = None) -> int:
        return parse_int(self.transact(build_read_value(Value.NEG_PEAK), timeouts))

    def read_state(self, timeouts: Timeouts | None = None) -> DeviceState:
        return parse_state(self.transact(build_read_value(Value.STATE), timeouts))

    # ─── CYCLIC MEASUREMENT ──────────────────────────────────────────

    def cyclic_measurement(
        self, enable: bool, length: int, timeouts: Timeouts | None = None
    ) -> None:
        """Enable or disable device-side buffering in blocks of ``length`` values.

        Raises:
            OutOfRangeError: If ``length`` is not 1-20; nothing is sent.
        """
        self.transact(build_cyclic(enable, length), timeouts)

    def poll_measurement(self, length: int, timeouts: Timeouts | None = None) -> list[int]:
        """Fetch one block of ``length`` buffered values.

        Callers decide the polling cadence; this issues a single transaction.
        The device answers busy until a full block is buffered, so a short
        block never arrives as a valid reply.

        Raises:
            DeviceBusyError: Fewer than ``length`` values are buffered yet, or
                cyclic measurement is off.
        """
        return parse_block(self.transact(build_poll(length), timeouts))

    # ─── CONTROL ─────────────────────────────────────────────────────

    def tare(self, timeouts: Timeouts | None = None) -> None:
        self.transact(build_control(Control.TARE), timeouts)

    def clear_pos_peak(self, timeouts: Timeouts | None = None) -> None:
        self.transact(build_control(Control.CLEAR_POS_PEAK), timeouts)

    def clear_neg_peak(self, timeouts: Timeouts | None = None) -> None:
        self.transact(build_control(Control.CLEAR_NEG_PEAK), timeouts)

    def start_measurement(self, timeouts: Timeouts | None = None) -> None:
        """Start a measurement. Busy if one is already running."""
        self.transact(build_control(Control.START_MEASUREMENT), timeouts)

    def stop_measurement(self, timeouts: Timeouts | None = None) -> None:
        self.transact(build_control(Control.STOP_MEASUREMENT), timeouts)

    # ─── LIMITS AND MODE ─────────────────────────────────────────────

    def set_pos_limit(self, limit: int, timeouts: Timeouts | None = None) -> None:
        self.transact(build_set_limit(Parameter.POS_LIMIT, limit), timeouts)

    def set_neg_limit(self, limit: int, timeouts: Timeouts | None = None) -> None:
        self.transact(build_set_limit(Parameter.NEG_LIMIT, limit), timeouts)

    def get_pos_limit(self, timeouts: Timeouts | None = None) -> int:
        return parse_int(self.transact(build_read_parameter(Parameter.POS_LIMIT), timeouts))

    def get_neg_limit(self, timeouts: Timeouts | None = None) -> int:
        return parse_int(self.transact(build_read_parameter(Parameter.NEG_LIMIT), timeouts))

    def set_mode(self, mode: MeasurementMode | int, timeouts: Timeouts | None = None) -> None:
        self.transact(build_set_mode(mode), timeouts)

    def get_mode(self, timeouts: Timeouts | None = None) -> MeasurementMode:
        return parse_mode(self.transact(build_read_parameter(Parameter.MODE), timeouts))
