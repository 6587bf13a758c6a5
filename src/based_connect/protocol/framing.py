"""Frame builder and parser for the headset's RFCOMM protocol.

Frame layout::

    +----------+-------+----------+----------+--------+------------------+----------+
    | Preamble | Block | Function | Operator | Length |     Payload      | Checksum |
    | 2 bytes  | 1 byte|  1 byte  |  1 byte  | 1 byte |  0-255 bytes     |  2 bytes |
    +----------+-------+----------+----------+--------+------------------+----------+

- Preamble: 0xAA 0x55
- Block/Function: the two bytes of the 16-bit opcode, high byte first
- Operator: what the frame asks for or reports (see :class:`Operator`)
- Length: number of payload bytes
- Checksum: inverted CRC-16 over (block .. payload), little-endian
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from ..errors import (
    ChecksumMismatch,
    InvalidPreamble,
    PayloadTooLarge,
    ProtocolDecodeError,
    Truncated,
    UnexpectedOpcode,
)
from ..utils.crc import crc16

PREAMBLE = b"\xAA\x55"
HEADER_SIZE = 6  # preamble(2) + block(1) + function(1) + operator(1) + length(1)
CHECKSUM_SIZE = 2
MAX_PAYLOAD_SIZE = 0xFF
MAX_FRAME_SIZE = HEADER_SIZE + MAX_PAYLOAD_SIZE + CHECKSUM_SIZE


class Operator(IntEnum):
    """Frame operator byte."""

    GET = 0x01
    SET_GET = 0x02
    STATUS = 0x03
    ERROR = 0x04


class Status(Enum):
    OK = "ok"
    DEVICE_ERROR = "device-error"


@dataclass(frozen=True)
class CommandFrame:
    """An outbound request. Framing and checksum are derived on encode."""

    opcode: int
    payload: bytes = b""
    operator: Operator = Operator.SET_GET

    def to_bytes(self) -> bytes:
        return encode_frame(self.opcode, self.payload, self.operator)

    def __repr__(self) -> str:
        return (
            f"CommandFrame(opcode=0x{self.opcode:04X}, operator={self.operator.name}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


@dataclass(frozen=True)
class ResponseFrame:
    """A reply whose framing and checksum have been verified."""

    opcode: int
    operator: int
    payload: bytes

    @property
    def status(self) -> Status:
        if self.operator == Operator.ERROR:
            return Status.DEVICE_ERROR
        return Status.OK

    def __repr__(self) -> str:
        return (
            f"ResponseFrame(opcode=0x{self.opcode:04X}, operator=0x{self.operator:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def encode_frame(
    opcode: int, payload: bytes = b"", operator: int = Operator.SET_GET
) -> bytes:
    """Build a complete frame.

    Args:
        opcode: 16-bit opcode (function block in the high byte).
        payload: Command-specific payload bytes.
        operator: Operator byte.

    Raises:
        PayloadTooLarge: If ``payload`` does not fit in one frame.
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise PayloadTooLarge(len(payload), MAX_PAYLOAD_SIZE)
    body = opcode.to_bytes(2, "big") + bytes([operator, len(payload)]) + payload
    checksum = crc16(body).to_bytes(CHECKSUM_SIZE, "little")
    return PREAMBLE + body + checksum


def decode_frame(
    data: bytes, expected: int | None = None
) -> ResponseFrame | ProtocolDecodeError:
    """Parse one frame from the start of ``data``.

    Bytes past the end of the frame are ignored.

    Args:
        data: Raw bytes read from the device.
        expected: Opcode of the outstanding request, if any.

    Returns:
        A ``ResponseFrame``, or the ``ProtocolDecodeError`` describing why
        the bytes are not a valid reply. Nothing is raised.
    """
    if len(data) < len(PREAMBLE):
        return Truncated(HEADER_SIZE - len(data))
    if data[: len(PREAMBLE)] != PREAMBLE:
        return InvalidPreamble(f"Bad preamble {data[:2].hex(' ')}")
    if len(data) < HEADER_SIZE:
        return Truncated(HEADER_SIZE - len(data))

    length = data[5]
    frame_size = HEADER_SIZE + length + CHECKSUM_SIZE
    if len(data) < frame_size:
        return Truncated(frame_size - len(data))

    body = data[2 : HEADER_SIZE + length]
    carried = int.from_bytes(data[HEADER_SIZE + length : frame_size], "little")
    computed = crc16(body)
    if carried != computed:
        return ChecksumMismatch(carried, computed)

    opcode = int.from_bytes(data[2:4], "big")
    if expected is not None and opcode != expected:
        return UnexpectedOpcode(expected, opcode)

    return ResponseFrame(
        opcode=opcode,
        operator=data[4],
        payload=bytes(data[HEADER_SIZE : HEADER_SIZE + length]),
    )
