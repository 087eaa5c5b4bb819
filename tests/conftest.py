"""Shared fixtures: a simulated sensor link with a fake clock."""

from __future__ import annotations

import pytest

from fingerprint_uart.protocol.framing import HEADER_SIZE, PacketKind, build_frame
from fingerprint_uart.sensor import FingerprintSensor
from fingerprint_uart.transport.ring_buffer import RingBuffer


class FakeClock:
    """Monotonic nanosecond clock that only advances when slept on."""

    def __init__(self) -> None:
        self.now = 0
        self.sleeps = 0

    def __call__(self) -> int:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps += 1
        self.now += round(seconds * 1_000_000_000)


class SimulatedSensor:
    """Loopback link that answers each complete command packet with the
    next scripted reply, pushed into the receive ring buffer."""

    def __init__(self, capacity: int = 512) -> None:
        self.buffer = RingBuffer(capacity)
        self.clock = FakeClock()
        self.writes: list[bytes] = []
        self.commands: list[bytes] = []
        self._replies: list[bytes] = []
        self._pending = bytearray()

    def reply(self, payload: bytes, kind: int = PacketKind.ACK) -> None:
        self._replies.append(build_frame(kind, payload))

    def reply_raw(self, data: bytes) -> None:
        self._replies.append(data)

    @property
    def command_payloads(self) -> list[bytes]:
        return [packet[HEADER_SIZE:-2] for packet in self.commands]

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        self._pending += data
        if len(self._pending) >= HEADER_SIZE:
            length = int.from_bytes(self._pending[7:9], "big")
            end = HEADER_SIZE + length
            if len(self._pending) >= end:
                self.commands.append(bytes(self._pending[:end]))
                del self._pending[:end]
                if self._replies:
                    self.buffer.extend(self._replies.pop(0))
        return len(data)

    def sleep(self, seconds: float) -> None:
        self.clock.sleep(seconds)


@pytest.fixture
def link() -> SimulatedSensor:
    return SimulatedSensor()


@pytest.fixture
def sensor(link: SimulatedSensor) -> FingerprintSensor:
    return FingerprintSensor(link, timeout_ms=50, clock=link.clock)
