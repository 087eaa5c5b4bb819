"""Command layer for the fingerprint sensor.

Every operation is one synchronous transaction: send a command packet,
decode the reply, require an acknowledge packet and read the confirmation
code from its first payload byte. Outcomes are returned as
:class:`~fingerprint_uart.protocol.status.Status` values; nothing here
retries.

The sensor is a strictly sequential responder and this class is not
thread-safe. Callers sharing one instance across threads must serialize
calls themselves.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from .models.parameters import SensorParameters
from .protocol import commands
from .protocol.framing import (
    BROADCAST_ADDRESS,
    DEFAULT_TIMEOUT_MS,
    Frame,
    FrameDecoder,
    PacketKind,
    build_frame_parts,
)
from .protocol.parser import (
    ParametersResult,
    SearchResult,
    TemplateCountResult,
    parse_parameters,
    parse_search,
    parse_status,
    parse_template_count,
)
from .protocol.status import Status
from .transport.ring_buffer import RingBuffer

logger = logging.getLogger(__name__)


class Link(Protocol):
    """What the command layer needs from a transport."""

    @property
    def buffer(self) -> RingBuffer: ...

    def write(self, data: bytes) -> int: ...

    def sleep(self, seconds: float) -> None: ...


class FingerprintSensor:
    """Driver for an R503-style optical fingerprint module.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        sensor = FingerprintSensor(conn)
        sensor.begin()
        if sensor.capture_image() is Status.OK:
            ...
    """

    def __init__(
        self,
        link: Link,
        password: int = 0,
        address: int = BROADCAST_ADDRESS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        verify_checksum: bool = True,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._link = link
        self._password = password
        self.address = address
        self.timeout_ms = timeout_ms
        self._decoder = FrameDecoder(
            link.buffer,
            sleep=link.sleep,
            clock=clock,
            verify_checksum=verify_checksum,
        )
        self.parameters = SensorParameters()

    # ─── TRANSACTION PRIMITIVES ──────────────────────────────────────

    def send_frame(self, kind: int, payload: bytes = b"") -> None:
        """Write one packet as three ordered writes: header, payload, checksum."""
        header, body, checksum = build_frame_parts(kind, payload, self.address)
        logger.debug("-> %s | %s | %s", header.hex(" "), body.hex(" "), checksum.hex(" "))
        self._link.write(header)
        if body:
            self._link.write(body)
        self._link.write(checksum)

    def read_frame(self, timeout_ms: int | None = None) -> tuple[Status, Frame | None]:
        """Decode the next packet from the receive buffer."""
        return self._decoder.decode(self.timeout_ms if timeout_ms is None else timeout_ms)

    def transact(self, payload: bytes, timeout_ms: int | None = None) -> tuple[Status, Frame | None]:
        """Send a command payload and wait for its acknowledge packet.

        Args:
            payload: Opcode followed by parameter bytes, see
                :mod:`fingerprint_uart.protocol.commands`.
            timeout_ms: Reply timeout, defaults to :attr:`timeout_ms`.

        Returns:
            ``(status, frame)`` where status is the sensor's confirmation
            code, or ``(Status.RECEIVE_ERROR, None)`` if no valid
            acknowledge packet arrived.

        Unread bytes left over from an earlier exchange, such as a reply
        that arrived after its timeout, are discarded before sending.
        """
        if self._link.buffer.has_data():
            logger.debug(
                "Discarding %d stale byte(s) before opcode 0x%02X",
                len(self._link.buffer),
                payload[0],
            )
            self._link.buffer.clear()
        self.send_frame(PacketKind.COMMAND, payload)
        status, frame = self.read_frame(timeout_ms)
        if status is not Status.OK:
            logger.debug("No reply to opcode 0x%02X: %s", payload[0], status.description)
            return Status.RECEIVE_ERROR, None
        if frame.kind != PacketKind.ACK:
            logger.debug("Expected acknowledge packet, got kind 0x%02X", frame.kind)
            return Status.RECEIVE_ERROR, None
        return parse_status(frame), frame

    def _simple(self, payload: bytes) -> Status:
        status, _ = self.transact(payload)
        return status

    # ─── IMAGING / TEMPLATES ─────────────────────────────────────────

    def capture_image(self) -> Status:
        """Capture a finger image into the image buffer.

        Returns ``NO_FINGER`` when nothing is on the sensor and
        ``IMAGE_FAIL`` on imaging errors.
        """
        return self._simple(commands.build_capture_image())

    def extract_features(self, slot: int = 1) -> Status:
        """Convert the captured image into a feature template in buffer ``slot``.

        Returns ``IMAGE_MESSY``, ``FEATURE_FAIL`` or ``INVALID_IMAGE`` when
        the image cannot be used.
        """
        return self._simple(commands.build_extract_features(slot))

    def create_model(self) -> Status:
        """Combine buffers 1 and 2 into a model; ``ENROLL_MISMATCH`` if they differ."""
        return self._simple(commands.build_create_model())

    def store_model(self, location: int, slot: int = 1) -> Status:
        """Store template buffer ``slot`` at library ``location``.

        Returns ``BAD_LOCATION`` for an out-of-range page and
        ``FLASH_ERROR`` if the write fails.
        """
        return self._simple(commands.build_store_model(location, slot))

    def load_model(self, location: int, slot: int = 1) -> Status:
        return self._simple(commands.build_load_model(location, slot))

    def upload_model(self, slot: int = 1) -> Status:
        """Ask the sensor to stream template buffer ``slot`` to the host.

        Only the acknowledge is read; use :meth:`download_model` to also
        collect the data packets that follow it.
        """
        return self._simple(commands.build_upload_model(slot))

    def download_model(self, slot: int = 1) -> tuple[Status, bytes]:
        """Upload template buffer ``slot`` and collect the streamed template.

        After the acknowledge the sensor sends data packets terminated by an
        end-of-data packet. Their payloads are concatenated.
        """
        status = self.upload_model(slot)
        if status is not Status.OK:
            return status, b""

        template = bytearray()
        while True:
            status, frame = self.read_frame()
            if status is not Status.OK:
                logger.debug("Template transfer failed: %s", status.description)
                return Status.RECEIVE_ERROR, b""
            if frame.kind not in (PacketKind.DATA, PacketKind.END_DATA):
                logger.debug("Unexpected kind 0x%02X during template transfer", frame.kind)
                return Status.RECEIVE_ERROR, b""
            template += frame.payload
            if frame.kind == PacketKind.END_DATA:
                return Status.OK, bytes(template)

    def delete_model(self, location: int) -> Status:
        """Delete the template stored at ``location``."""
        return self._simple(commands.build_delete_model(location, 1))

    def empty_database(self) -> Status:
        """Delete every stored template."""
        return self._simple(commands.build_empty_database())

    # ─── SEARCH ──────────────────────────────────────────────────────

    def fast_search(self) -> SearchResult:
        """High-speed search of buffer 1 over the fixed page range 0-0xA3."""
        status, frame = self.transact(commands.build_fast_search())
        if frame is None:
            return SearchResult(status=status)
        return parse_search(frame)

    def search(self, slot: int = 1, capacity: int | None = None) -> SearchResult:
        """Search buffer ``slot`` against the library.

        Args:
            slot: Template buffer (1 or 2).
            capacity: Last page to search, defaults to the cached
                :attr:`parameters` capacity.

        Returns:
            A :class:`SearchResult`; ``NOT_FOUND`` when there is no match.
        """
        if capacity is None:
            capacity = self.parameters.capacity
        status, frame = self.transact(commands.build_search(slot, capacity))
        if frame is None:
            return SearchResult(status=status)
        return parse_search(frame)

    def template_count(self) -> TemplateCountResult:
        """Number of templates stored in the library."""
        status, frame = self.transact(commands.build_template_count())
        if frame is None:
            return TemplateCountResult(status=status)
        return parse_template_count(frame)

    # ─── PASSWORD ────────────────────────────────────────────────────

    def set_password(self, password: int) -> Status:
        """Change the module password; later sessions must verify it."""
        status = self._simple(commands.build_set_password(password))
        if status is Status.OK:
            self._password = password
        return status

    def check_password(self, password: int | None = None) -> Status:
        """Verify ``password`` (default: the configured one).

        Any confirmation code other than OK is reported as
        ``RECEIVE_ERROR``.
        """
        if password is None:
            password = self._password
        status = self._simple(commands.build_check_password(password))
        if status is not Status.OK:
            return Status.RECEIVE_ERROR
        return status

    def verify_password(self) -> bool:
        return self.check_password() is Status.OK

    # ─── PARAMETERS / LED ────────────────────────────────────────────

    def query_parameters(self) -> ParametersResult:
        """Read the system parameter block.

        The returned parameters also replace the cached :attr:`parameters`.
        """
        status, frame = self.transact(commands.build_query_parameters())
        if frame is None:
            return ParametersResult(status=status)
        result = parse_parameters(frame)
        if result.status is Status.OK and result.parameters is not None:
            self.parameters = result.parameters
            logger.info(
                "Sensor capacity %d, security level %d, packet size %d, %d baud",
                result.parameters.capacity,
                result.parameters.security_level,
                result.parameters.packet_size,
                result.parameters.baud_rate,
            )
        return result

    def led_control(self, on: bool) -> Status:
        """Switch the plain LED on or off."""
        return self._simple(commands.build_led(on))

    def aura_led_control(self, mode: int, speed: int, color: int, count: int = 0) -> Status:
        """Drive the Aura ring LED, see :class:`~fingerprint_uart.protocol.commands.LedMode`."""
        return self._simple(commands.build_aura_led(mode, speed, color, count))

    # ─── STARTUP ─────────────────────────────────────────────────────

    def begin(self) -> SensorParameters:
        """Handshake with the sensor and prime the parameter cache.

        Verifies the password, then queries the system parameters and the
        template count.

        Raises:
            ConnectionError: If the password is not accepted.
        """
        if not self.verify_password():
            raise ConnectionError("Fingerprint sensor did not accept the password")

        params = self.query_parameters()
        if params.status is not Status.OK:
            logger.warning("Could not read sensor parameters: %s", params.status.description)

        count = self.template_count()
        if count.status is Status.OK:
            logger.info("Sensor contains %d template(s)", count.count)
        return self.parameters
