"""Blocking RFCOMM transport to the headset.

The headset listens on a fixed RFCOMM channel. Every send and receive is
bounded by a timeout so an unresponsive device cannot hang the process.
"""

from __future__ import annotations

import logging
import socket
import time

from ..errors import ConnectionClosed, ReceiveTimeout, SendTimeout, TransportError

logger = logging.getLogger(__name__)

RFCOMM_CHANNEL = 8
SEND_TIMEOUT = 5.0
RECEIVE_TIMEOUT = 1.0


class RfcommTransport:
    """Sends and receives raw bytes over a connected stream socket.

    Usage::

        transport = open_rfcomm("4C:87:5D:00:11:22")
        transport.send(frame_bytes)
        header = transport.receive(6)
        transport.close()

    Any object with ``send``, ``recv``, ``settimeout`` and ``close`` can be
    wrapped, which is how the tests drive it.
    """

    def __init__(
        self,
        sock,
        send_timeout: float = SEND_TIMEOUT,
        receive_timeout: float = RECEIVE_TIMEOUT,
    ) -> None:
        self._sock = sock
        self._send_timeout = send_timeout
        self._receive_timeout = receive_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def send_timeout(self) -> float:
        return self._send_timeout

    @property
    def receive_timeout(self) -> float:
        return self._receive_timeout

    def send(self, data: bytes) -> None:
        """Write all of ``data`` within the send timeout.

        Short writes are continued until everything is sent or the deadline
        passes.

        Raises:
            SendTimeout: If the data was not fully written in time.
            ConnectionClosed: If the stream is closed or broken.
        """
        self._ensure_open()
        view = memoryview(data)
        sent = 0
        deadline = time.monotonic() + self._send_timeout

        while sent < len(data):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise SendTimeout(sent, len(data))
            self._sock.settimeout(remaining)
            try:
                count = self._sock.send(view[sent:])
            except socket.timeout:
                raise SendTimeout(sent, len(data)) from None
            except OSError as e:
                raise ConnectionClosed(f"Send failed: {e}") from e
            if count == 0:
                raise ConnectionClosed("Connection closed while sending")
            sent += count
            if sent < len(data):
                logger.debug("Short write: %d of %d bytes", sent, len(data))

        logger.debug("→ %s", bytes(data).hex(" "))

    def receive(self, size: int) -> bytes:
        """Read exactly ``size`` bytes within the receive timeout.

        Raises:
            ReceiveTimeout: If fewer than ``size`` bytes arrived in time.
            ConnectionClosed: If the peer closed the stream.
        """
        self._ensure_open()
        data = bytearray()
        deadline = time.monotonic() + self._receive_timeout

        while len(data) < size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReceiveTimeout(len(data), size)
            self._sock.settimeout(remaining)
            try:
                chunk = self._sock.recv(size - len(data))
            except socket.timeout:
                raise ReceiveTimeout(len(data), size) from None
            except OSError as e:
                raise ConnectionClosed(f"Receive failed: {e}") from e
            if not chunk:
                raise ConnectionClosed(
                    f"Connection closed by device after {len(data)} of {size} bytes"
                )
            data.extend(chunk)

        logger.debug("← %s", data.hex(" "))
        return bytes(data)

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._closed:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._closed = True
            logger.info("Disconnected")

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionClosed("Transport is closed")


def open_rfcomm(
    address: str,
    channel: int = RFCOMM_CHANNEL,
    send_timeout: float = SEND_TIMEOUT,
    receive_timeout: float = RECEIVE_TIMEOUT,
) -> RfcommTransport:
    """Connect to a headset and wrap the socket in an ``RfcommTransport``.

    The send timeout also bounds the connect call.

    Raises:
        TransportError: If Bluetooth sockets are unavailable or the
            connection fails.
    """
    if not hasattr(socket, "AF_BLUETOOTH") or not hasattr(socket, "BTPROTO_RFCOMM"):
        raise TransportError(
            "Python Bluetooth socket support is unavailable; "
            "ensure BlueZ headers were present when Python was built"
        )

    try:
        sock = socket.socket(
            socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM
        )
    except OSError as e:  # pragma: no cover - depends on kernel support
        raise TransportError(f"Could not create RFCOMM socket: {e}") from e

    try:
        sock.settimeout(send_timeout)
        sock.connect((address, channel))
    except OSError as e:
        sock.close()
        raise TransportError(
            f"Could not connect to Bluetooth device {address} on channel {channel}: {e}"
        ) from e

    logger.info("Connected to %s on RFCOMM channel %d", address, channel)
    return RfcommTransport(sock, send_timeout=send_timeout, receive_timeout=receive_timeout)
