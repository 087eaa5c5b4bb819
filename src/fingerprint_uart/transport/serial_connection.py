"""UART connection to the fingerprint sensor module.

A background reader thread plays the role of the receive interrupt: it
pushes every byte it reads into a :class:`RingBuffer` and never blocks on
the consumer. Writes happen on the caller's thread.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import serial

from .ring_buffer import DEFAULT_CAPACITY, RingBuffer

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD_RATE = 57600
BAUD_UNIT = 9600
MAX_BAUD_MULTIPLIER = 12  # 115200
READ_TIMEOUT_S = 0.05


@dataclass
class PortInfo:
    """Settings of the opened serial port."""

    port: str = DEFAULT_PORT
    baud_rate: int = DEFAULT_BAUD_RATE


def validate_baud_rate(baud_rate: int) -> int:
    """Check that ``baud_rate`` is a multiple of 9600 up to 115200."""
    multiplier, remainder = divmod(baud_rate, BAUD_UNIT)
    if remainder or not 1 <= multiplier <= MAX_BAUD_MULTIPLIER:
        raise ValueError(
            f"Baud rate must be a multiple of {BAUD_UNIT} up to "
            f"{BAUD_UNIT * MAX_BAUD_MULTIPLIER}, got {baud_rate}"
        )
    return baud_rate


class SerialConnection:
    """Manages the serial link to the sensor.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(packet_bytes)
        while conn.buffer.has_data():
            byte = conn.buffer.pop()
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baud_rate: int = DEFAULT_BAUD_RATE,
        buffer_size: int = DEFAULT_CAPACITY,
    ) -> None:
        self._info = PortInfo(port=port, baud_rate=validate_baud_rate(baud_rate))
        self._buffer = RingBuffer(buffer_size)
        self._serial: serial.Serial | None = None
        self._reader: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port_info(self) -> PortInfo:
        return self._info

    @property
    def buffer(self) -> RingBuffer:
        return self._buffer

    def open(self) -> PortInfo:
        """Open the port and start the reader thread.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info

        try:
            self._serial = serial.Serial(
                port=self._info.port,
                baudrate=self._info.baud_rate,
                timeout=READ_TIMEOUT_S,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                bytesize=serial.EIGHTBITS,
            )
        except serial.SerialException as e:
            self._serial = None
            raise ConnectionError(
                f"Could not open fingerprint sensor on {self._info.port} "
                f"at {self._info.baud_rate} baud: {e}"
            ) from e

        self._buffer.clear()
        self._stop.clear()
        self._reader = threading.Thread(
            target=self._read_loop, name="fingerprint-rx", daemon=True
        )
        self._reader.start()
        logger.info("Opened %s at %d baud", self._info.port, self._info.baud_rate)
        return self._info

    def close(self) -> None:
        """Stop the reader thread and close the port."""
        if self._serial is None:
            return

        self._stop.set()
        if self._reader is not None:
            self._reader.join(timeout=1.0)
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            self._reader = None
            logger.info("Closed %s", self._info.port)

    def write(self, data: bytes) -> int:
        """Write bytes to the sensor, blocking until they are queued.

        Raises:
            ConnectionError: If not connected.
        """
        if not self.connected:
            raise ConnectionError("Not connected to fingerprint sensor")
        written = self._serial.write(data)
        self._serial.flush()
        return written

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def _read_loop(self) -> None:
        ser = self._serial
        while not self._stop.is_set():
            try:
                data = ser.read(ser.in_waiting or 1)
            except (serial.SerialException, OSError) as e:
                logger.warning("Serial read failed, stopping reader: %s", e)
                break
            for byte in data:
                self._buffer.push(byte)
