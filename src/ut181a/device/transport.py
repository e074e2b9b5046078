"""Byte transports and device discovery.

`Transport` is the structural interface the protocol layer talks to. The real
meter is reached through `SerialTransport` (pyserial); the simulated meter in
`ut181a.device.mock` implements the same interface.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import serial
import serial.tools.list_ports
from loguru import logger

from ut181a.types import DeviceCandidate, LinkLost, TransportTimeout
from ut181a.util.defaults import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT, USB_PID, USB_VID


@runtime_checkable
class Transport(Protocol):
    """Byte-oriented link to the meter.

    `receive` must return within `timeout` seconds: either with at least one
    byte, or by raising TransportTimeout. Link failures raise LinkLost.
    """

    def send(self, data: bytes) -> None: ...

    def receive(self, max_bytes: int, timeout: float) -> bytes: ...

    def flush_input(self) -> None: ...

    def close(self) -> None: ...

    @property
    def is_open(self) -> bool: ...


class SerialTransport:
    """Transport over the meter's USB serial bridge."""

    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE):
        self.port_name = port
        self.baudrate = baudrate
        try:
            self._serial = serial.Serial(
                port=port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=DEFAULT_TIMEOUT,
                write_timeout=DEFAULT_TIMEOUT,
            )
        except (serial.SerialException, OSError) as e:
            raise LinkLost(f"Could not open serial port {port}: {e}") from e
        logger.debug("Opened serial port {} at {} baud", port, baudrate)

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def send(self, data: bytes) -> None:
        if not self.is_open:
            raise LinkLost(f"Serial port {self.port_name} is closed")
        try:
            self._serial.write(data)
            self._serial.flush()
        except serial.SerialTimeoutException as e:
            raise TransportTimeout(f"Write to {self.port_name} timed out") from e
        except (serial.SerialException, OSError) as e:
            raise LinkLost(f"Write to {self.port_name} failed: {e}") from e

    def receive(self, max_bytes: int, timeout: float) -> bytes:
        if not self.is_open:
            raise LinkLost(f"Serial port {self.port_name} is closed")
        try:
            self._serial.timeout = max(timeout, 0.0)
            data = self._serial.read(1)
            if not data:
                raise TransportTimeout(
                    f"No data from {self.port_name} within {timeout:.2f} s"
                )
            waiting = min(self._serial.in_waiting, max_bytes - 1)
            if waiting > 0:
                data += self._serial.read(waiting)
            return data
        except (serial.SerialException, OSError) as e:
            raise LinkLost(f"Read from {self.port_name} failed: {e}") from e

    def flush_input(self) -> None:
        if self.is_open:
            try:
                self._serial.reset_input_buffer()
            except (serial.SerialException, OSError) as e:
                raise LinkLost(f"Flush of {self.port_name} failed: {e}") from e

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError):
            logger.exception("Error closing serial port {}", self.port_name)
        finally:
            self._serial = None
        logger.debug("Closed serial port {}", self.port_name)


def enumerate_candidates(vid: int = USB_VID, pid: int = USB_PID) -> list[DeviceCandidate]:
    """List attached meters, matched on the USB bridge's VID/PID."""
    candidates = []
    for p in serial.tools.list_ports.comports():
        if p.vid != vid or p.pid != pid:
            continue
        candidates.append(
            DeviceCandidate(
                port=p.device, serial=p.serial_number or "", description=p.description
            )
        )
    candidates.sort(key=lambda c: c.port)
    logger.debug("Found {} candidate meter(s)", len(candidates))
    return candidates
