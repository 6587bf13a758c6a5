"""CRC-16 used for frame checksums.

CRC-16/ARC (reflected polynomial 0xA001, zero initial value), with the
result inverted before it is placed on the wire.
"""

from __future__ import annotations


def _build_table() -> list[int]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
        table.append(crc)
    return table


_TABLE = _build_table()


def crc16(data: bytes) -> int:
    """Return the inverted CRC-16 of ``data``."""
    crc = 0
    for byte in data:
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    return crc ^ 0xFFFF
