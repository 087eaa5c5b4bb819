"""Tests for the single-producer/single-consumer ring buffer."""

import threading

import pytest

from fingerprint_uart.transport.ring_buffer import RingBuffer


def test_fifo_order():
    buf = RingBuffer(8)
    data = bytes([0x10, 0x20, 0x30, 0x40, 0x50])
    buf.extend(data)
    out = [buf.pop() for _ in range(len(data))]
    assert bytes(out) == data
    assert not buf.has_data()


def test_has_data_tracks_cursors():
    buf = RingBuffer(4)
    assert not buf.has_data()
    buf.push(0xAA)
    assert buf.has_data()
    assert buf.pop() == 0xAA
    assert not buf.has_data()


def test_pop_empty_raises():
    with pytest.raises(IndexError):
        RingBuffer(4).pop()


def test_wraps_around_capacity():
    """Interleaved push/pop crosses the end of the backing array many times."""
    buf = RingBuffer(3)
    for i in range(20):
        buf.push(i)
        buf.push(i + 100)
        assert buf.pop() == i
        assert buf.pop() == i + 100
    assert not buf.has_data()


def test_fill_to_usable_capacity_keeps_everything():
    """One slot stays free: a capacity-4 buffer holds three unread bytes."""
    buf = RingBuffer(4)
    buf.extend(b"\x01\x02\x03")
    assert len(buf) == 3
    assert bytes(buf.pop() for _ in range(3)) == b"\x01\x02\x03"
    assert buf.overruns == 0


def test_overflow_overwrites_oldest():
    """Pushing past usable capacity without popping loses the oldest unread bytes."""
    buf = RingBuffer(4)
    buf.extend(bytes([0, 1, 2, 3, 4, 5]))
    assert len(buf) == 3
    out = [buf.pop() for _ in range(3)]
    assert out == [3, 4, 5]
    assert buf.overruns == 3
    assert not buf.has_data()


def _store_without_publishing(buf, byte):
    """Do the first half of a push: write the slot but leave the head alone."""
    buf._data[buf._head % buf.capacity] = byte


def test_pending_store_does_not_reach_consumer():
    """A slot written before the head is published is never read early."""
    buf = RingBuffer(4)
    buf.extend(b"\xb1\xb2\xb3")
    _store_without_publishing(buf, 0xB4)
    assert buf.pop() == 0xB1
    buf._head += 1
    assert [buf.pop() for _ in range(3)] == [0xB2, 0xB3, 0xB4]
    assert buf.overruns == 0


def test_pending_store_into_full_buffer_counts_overrun():
    """A store that laps the oldest byte is counted even before it is published."""
    buf = RingBuffer(4)
    buf.extend(b"\xb1\xb2\xb3\xb4")
    _store_without_publishing(buf, 0xB5)
    assert buf.pop() == 0xB2
    assert buf.overruns == 1
    buf._head += 1
    assert [buf.pop() for _ in range(3)] == [0xB3, 0xB4, 0xB5]
    assert buf.overruns == 1
    assert not buf.has_data()


def test_push_masks_to_byte():
    buf = RingBuffer(2)
    buf.push(0x1FF)
    assert buf.pop() == 0xFF


def test_clear_discards_unread():
    buf = RingBuffer(4)
    buf.extend(b"\x01\x02\x03")
    buf.clear()
    assert not buf.has_data()
    buf.push(0x09)
    assert buf.pop() == 0x09


def test_invalid_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)
    with pytest.raises(ValueError):
        RingBuffer(1)


def test_concurrent_producer_consumer():
    """A producer thread and a consumer thread see every byte in order."""
    total = 20000
    buf = RingBuffer(total + 1)
    expected = bytes(i & 0xFF for i in range(total))

    def produce():
        for byte in expected:
            buf.push(byte)

    producer = threading.Thread(target=produce)
    producer.start()
    received = bytearray()
    while len(received) < total:
        if buf.has_data():
            received.append(buf.pop())
    producer.join()

    assert bytes(received) == expected
    assert buf.overruns == 0
