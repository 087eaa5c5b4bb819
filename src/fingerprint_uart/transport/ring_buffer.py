"""Single-producer/single-consumer byte ring buffer.

The serial reader thread is the only producer and the thread issuing
commands is the only consumer. Each side owns one cursor:

- ``_head`` counts bytes ever pushed and is written only by :meth:`push`.
- ``_tail`` counts bytes ever consumed and is written only by the consumer.

Cursors are unbounded integers; the slot for a cursor is ``cursor % capacity``.
A single attribute store is atomic in CPython, and the producer writes the
slot before it publishes the advanced head, so the consumer never sees a head
that covers an unwritten slot.

One slot is kept free, so at most ``capacity - 1`` bytes are readable. The
slot the producer is filling (``head % capacity``) is then never the slot
the consumer reads, even before the new head is published.

Overflow policy is overwrite-oldest. Once the producer is ``capacity`` or
more bytes ahead, the consumer skips the overwritten bytes on its next
:meth:`pop`, adds them to :attr:`overruns` and logs a warning.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 512


class RingBuffer:
    """Bounded byte FIFO shared between the reader thread and the caller."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 2:
            raise ValueError(f"Ring buffer capacity must be at least 2, got {capacity}")
        self._capacity = capacity
        self._data = bytearray(capacity)
        self._head = 0
        self._tail = 0
        self.overruns = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return min(self._head - self._tail, self._capacity - 1)

    def push(self, byte: int) -> None:
        """Append one byte. Producer side only; never blocks."""
        head = self._head
        self._data[head % self._capacity] = byte & 0xFF
        self._head = head + 1

    def extend(self, data: bytes) -> None:
        """Push every byte of ``data`` in order."""
        for byte in data:
            self.push(byte)

    def has_data(self) -> bool:
        return self._head != self._tail

    def pop(self) -> int:
        """Remove and return the oldest unread byte. Consumer side only.

        Raises:
            IndexError: If the buffer is empty. Callers check
                :meth:`has_data` first.
        """
        while True:
            head = self._head
            tail = self._tail
            if head == tail:
                raise IndexError("pop from empty ring buffer")

            lost = head - tail - self._capacity + 1
            if lost > 0:
                self.overruns += lost
                tail += lost
                logger.warning(
                    "Ring buffer overrun: %d unread byte(s) overwritten", lost
                )

            byte = self._data[tail % self._capacity]
            # The producer may have lapped this slot while it was read
            if self._head - tail >= self._capacity:
                self._tail = tail
                continue
            self._tail = tail + 1
            return byte

    def clear(self) -> None:
        """Discard all unread bytes. Consumer side only."""
        self._tail = self._head
