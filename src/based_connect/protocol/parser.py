"""Interpretation of device replies."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import DeviceRejected
from .commands import Opcode
from .framing import ResponseFrame, Status

# Error codes carried in the first payload byte of an ERROR reply.
DEVICE_ERRORS = {
    0x01: "invalid length",
    0x02: "invalid checksum",
    0x03: "function block not supported",
    0x04: "function not supported",
    0x05: "operator not supported",
    0x06: "invalid data",
    0x07: "data unavailable",
    0x08: "runtime error",
    0x09: "timeout",
    0x0A: "invalid state",
    0x0B: "device not found",
    0x0C: "busy",
}


@dataclass
class HandshakeResponse:
    """Parsed CONNECT acknowledgment."""

    protocol_version: str
    raw: bytes

    def __repr__(self) -> str:
        return f"HandshakeResponse(protocol_version={self.protocol_version!r})"


def parse_handshake(frame: ResponseFrame) -> HandshakeResponse | None:
    """Parse a CONNECT acknowledgment.

    The payload is the device's protocol version as printable ASCII
    (e.g. ``1.2.3``). Anything else is kept only as raw bytes.
    """
    if frame.opcode != Opcode.CONNECT:
        return None

    payload = frame.payload
    text = payload.split(b"\x00")[0].decode("ascii", errors="replace")
    if not text or not text.isprintable():
        text = "unknown"
    return HandshakeResponse(protocol_version=text, raw=payload)


def device_error(frame: ResponseFrame) -> DeviceRejected | None:
    """Return the rejection described by an ERROR reply, else ``None``."""
    if frame.status is not Status.DEVICE_ERROR:
        return None

    if not frame.payload:
        return DeviceRejected(
            f"Device rejected opcode 0x{frame.opcode:04X}", code=None
        )
    code = frame.payload[0]
    reason = DEVICE_ERRORS.get(code, "unknown error")
    return DeviceRejected(
        f"Device rejected opcode 0x{frame.opcode:04X}: {reason} (0x{code:02X})",
        code=code,
    )


def check_echo(frame: ResponseFrame, expected: int) -> DeviceRejected | None:
    """Check that a status reply reports the value that was just set.

    Replies without a payload carry no echo and are accepted.
    """
    if not frame.payload or frame.payload[0] == expected:
        return None
    return DeviceRejected(
        f"Device reports 0x{frame.payload[0]:02X} for opcode 0x{frame.opcode:04X}, "
        f"expected 0x{expected:02X}"
    )
