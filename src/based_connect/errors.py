"""Error taxonomy for the headset protocol.

Transport and encode errors are raised at their seams; the command session
catches them and hands them back inside a ``CommandResult``. Decode errors
are never raised by the codec, only returned.
"""

from __future__ import annotations


class BasedConnectError(Exception):
    """Base class for every failure the tool reports."""

    kind = "error"

    def __str__(self) -> str:
        message = super().__str__()
        return message or self.kind


class ValidationError(BasedConnectError, ValueError):
    """A command-line argument is outside its allowed set."""

    kind = "invalid-argument"


class ProtocolEncodeError(BasedConnectError):
    kind = "encode-error"


class PayloadTooLarge(ProtocolEncodeError):
    """The payload does not fit in a single frame."""

    kind = "payload-too-large"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Payload of {size} bytes exceeds the {limit} byte maximum")
        self.size = size
        self.limit = limit


class TransportError(BasedConnectError):
    kind = "transport-error"


class SendTimeout(TransportError):
    kind = "send-timeout"

    def __init__(self, sent: int, total: int) -> None:
        super().__init__(f"Timed out after sending {sent} of {total} bytes")
        self.sent = sent
        self.total = total


class ReceiveTimeout(TransportError):
    kind = "receive-timeout"

    def __init__(self, received: int, expected: int) -> None:
        super().__init__(
            f"Timed out waiting for the device (got {received} of {expected} bytes)"
        )
        self.received = received
        self.expected = expected


class ConnectionClosed(TransportError):
    kind = "connection-closed"


class ProtocolDecodeError(BasedConnectError):
    kind = "decode-error"


class Truncated(ProtocolDecodeError):
    """The buffer ends before the frame does."""

    kind = "truncated"

    def __init__(self, needed: int) -> None:
        super().__init__(f"Frame is incomplete, {needed} more bytes needed")
        self.needed = needed


class InvalidPreamble(ProtocolDecodeError):
    kind = "invalid-preamble"


class ChecksumMismatch(ProtocolDecodeError):
    kind = "checksum-mismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Checksum mismatch: frame carries 0x{expected:04X}, computed 0x{actual:04X}"
        )
        self.expected = expected
        self.actual = actual


class UnexpectedOpcode(ProtocolDecodeError):
    kind = "unexpected-opcode"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Expected a reply to opcode 0x{expected:04X}, got 0x{actual:04X}"
        )
        self.expected = expected
        self.actual = actual


class DeviceRejected(BasedConnectError):
    """The device answered the request with a failure."""

    kind = "device-rejected"

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class SessionStateError(BasedConnectError):
    """A command was issued in a state that does not allow it."""

    kind = "session-state"
