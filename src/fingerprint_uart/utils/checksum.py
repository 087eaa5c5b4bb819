"""Packet checksum used by the sensor wire protocol.

The checksum is a plain 16-bit sum over the packet identifier (kind), both
bytes of the big-endian length field and every payload byte. Marker and
address bytes are not included.
"""

from __future__ import annotations


def checksum16(kind: int, length: int, payload: bytes = b"") -> int:
    """Compute the 16-bit packet checksum.

    Args:
        kind: Packet identifier byte.
        length: Value of the length field (payload length + 2).
        payload: Packet payload bytes.

    Returns:
        ``(len_hi + len_lo + kind + sum(payload)) mod 65536``.
    """
    total = (length >> 8) & 0xFF
    total += length & 0xFF
    total += kind & 0xFF
    total += sum(payload)
    return total & 0xFFFF
