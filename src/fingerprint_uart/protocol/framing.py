"""Packet builder and decoder for the sensor's serial wire format.

Packet layout::

    +------------+---------+------+--------+------------------+----------+
    | Start code | Address | Kind | Length |     Payload      | Checksum |
    | 2 bytes    | 4 bytes | 1 B  | 2 bytes|  variable length |  2 bytes |
    +------------+---------+------+--------+------------------+----------+

- Start code: 0xEF 0x01
- Address: big-endian module address, 0xFFFFFFFF when unconfigured
- Kind: command (0x01), data (0x02), acknowledge (0x07), end of data (0x08)
- Length: big-endian count of payload bytes + 2 checksum bytes
- Checksum: big-endian 16-bit sum of kind, both length bytes and payload
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

from ..transport.ring_buffer import RingBuffer
from ..utils.checksum import checksum16
from .status import Status

logger = logging.getLogger(__name__)

START_CODE = b"\xEF\x01"
BROADCAST_ADDRESS = 0xFFFFFFFF
HEADER_SIZE = 9  # start code(2) + address(4) + kind(1) + length(2)
CHECKSUM_SIZE = 2
MAX_PAYLOAD_SIZE = 256
DEFAULT_TIMEOUT_MS = 1000
POLL_INTERVAL_S = 0.001


class PacketKind(IntEnum):
    """Packet identifier byte."""

    COMMAND = 0x01
    DATA = 0x02
    ACK = 0x07
    END_DATA = 0x08


@dataclass
class Frame:
    """A decoded protocol packet."""

    kind: int
    payload: bytes
    address: int = BROADCAST_ADDRESS
    checksum: int | None = None

    def __repr__(self) -> str:
        return (
            f"Frame(kind=0x{self.kind:02X}, address=0x{self.address:08X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def build_header(kind: int, payload_len: int, address: int = BROADCAST_ADDRESS) -> bytes:
    """Build the 9-byte packet header."""
    if not 0 <= payload_len <= MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload must be 0-{MAX_PAYLOAD_SIZE} bytes, got {payload_len}"
        )
    length = payload_len + CHECKSUM_SIZE
    return (
        START_CODE
        + address.to_bytes(4, "big")
        + bytes([kind])
        + length.to_bytes(2, "big")
    )


def build_frame_parts(
    kind: int, payload: bytes = b"", address: int = BROADCAST_ADDRESS
) -> tuple[bytes, bytes, bytes]:
    """Split a packet into header, payload and checksum.

    The three parts are written to the link in this order.
    """
    header = build_header(kind, len(payload), address)
    checksum = checksum16(kind, len(payload) + CHECKSUM_SIZE, payload)
    return header, bytes(payload), checksum.to_bytes(2, "big")


def build_frame(kind: int, payload: bytes = b"", address: int = BROADCAST_ADDRESS) -> bytes:
    """Build a complete packet ready to transmit.

    Args:
        kind: Packet identifier byte.
        payload: Packet payload bytes.
        address: Module address.
    """
    return b"".join(build_frame_parts(kind, payload, address))


class FrameDecoder:
    """Timeout-bounded packet decoder reading from a :class:`RingBuffer`.

    The decoder scans for the first start-code byte, silently skipping
    anything else. Once that byte is seen the next byte must complete the
    start code; any other value fails the decode with ``BAD_FRAME`` instead
    of rescanning.

    While the buffer is empty the decoder sleeps for one poll interval and
    adds the measured idle time to a running total; the decode fails with
    ``TIMEOUT`` once that total reaches the caller's timeout. Idle time is
    accumulated over the whole packet, not reset per byte.
    """

    def __init__(
        self,
        buffer: RingBuffer,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = time.monotonic_ns,
        verify_checksum: bool = True,
        max_payload: int = MAX_PAYLOAD_SIZE,
    ) -> None:
        self._buffer = buffer
        self._sleep = sleep
        self._clock = clock
        self.verify_checksum = verify_checksum
        self.max_payload = max_payload

    def _wait_for_byte(self, idle_ns: int, limit_ns: int) -> int | None:
        """Poll until a byte is buffered; return the updated idle time.

        Returns ``None`` once the idle time reaches ``limit_ns``.
        """
        while not self._buffer.has_data():
            started = self._clock()
            self._sleep(POLL_INTERVAL_S)
            idle_ns += self._clock() - started
            if idle_ns >= limit_ns:
                return None
        return idle_ns

    def decode(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> tuple[Status, Frame | None]:
        """Read one packet from the buffer.

        Args:
            timeout_ms: Milliseconds of accumulated silence to tolerate.

        Returns:
            ``(Status.OK, frame)`` on success, otherwise
            ``(Status.TIMEOUT | Status.BAD_FRAME | Status.CHECKSUM_MISMATCH, None)``.
        """
        limit_ns = timeout_ms * 1_000_000
        idle_ns = 0
        index = 0
        skipped = 0
        address = 0
        kind = 0
        length = 0
        body = bytearray()

        while True:
            idle_ns = self._wait_for_byte(idle_ns, limit_ns)
            if idle_ns is None:
                logger.debug("Timed out after %d ms (%d byte(s) read)", timeout_ms, index)
                return Status.TIMEOUT, None
            byte = self._buffer.pop()

            if index == 0:
                if byte != START_CODE[0]:
                    skipped += 1
                    continue
                if skipped:
                    logger.debug("Skipped %d byte(s) before start code", skipped)
            elif index == 1:
                if byte != START_CODE[1]:
                    logger.debug("Bad start code 0x%02X%02X", START_CODE[0], byte)
                    return Status.BAD_FRAME, None
            elif index < 6:
                address = (address << 8) | byte
            elif index == 6:
                kind = byte
            elif index == 7:
                length = byte << 8
            elif index == 8:
                length |= byte
                if length < CHECKSUM_SIZE or length - CHECKSUM_SIZE > self.max_payload:
                    logger.debug("Invalid packet length %d", length)
                    return Status.BAD_FRAME, None
            else:
                body.append(byte)
                if len(body) == length:
                    return self._finish(address, kind, length, bytes(body))
            index += 1

    def _finish(
        self, address: int, kind: int, length: int, body: bytes
    ) -> tuple[Status, Frame | None]:
        payload = body[:-CHECKSUM_SIZE]
        received = int.from_bytes(body[-CHECKSUM_SIZE:], "big")
        if self.verify_checksum:
            expected = checksum16(kind, length, payload)
            if received != expected:
                logger.warning(
                    "Checksum mismatch: received 0x%04X, expected 0x%04X",
                    received,
                    expected,
                )
                return Status.CHECKSUM_MISMATCH, None

        frame = Frame(kind=kind, payload=payload, address=address, checksum=received)
        logger.debug("<- %r", frame)
        return Status.OK, frame
