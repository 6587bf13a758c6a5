"""Shared fixtures: a scripted in-memory socket standing in for RFCOMM."""

import logging
import socket

import pytest

from based_connect.protocol.commands import Opcode
from based_connect.protocol.framing import Operator, encode_frame
from based_connect.transport.rfcomm import RfcommTransport


class FakeSocket:
    """Socket double with scripted replies.

    Each ``send`` call records the bytes written and, if a reply is queued,
    makes it readable. ``recv`` raises ``socket.timeout`` when nothing is
    readable, like a real socket with a timeout set.
    """

    def __init__(self, replies=(), send_limit=None, recv_limit=None):
        self.replies = list(replies)
        self.sent = []
        self.timeouts = []
        self.closed = False
        self.send_limit = send_limit
        self.recv_limit = recv_limit
        self.peer_closed = False
        self._inbox = bytearray()

    def settimeout(self, value):
        self.timeouts.append(value)

    def send(self, data):
        data = bytes(data)
        if self.send_limit is not None:
            data = data[: self.send_limit]
        self.sent.append(data)
        if self.replies:
            self._inbox.extend(self.replies.pop(0))
        return len(data)

    def recv(self, size):
        if self.recv_limit is not None:
            size = min(size, self.recv_limit)
        if not self._inbox:
            if self.peer_closed:
                return b""
            raise socket.timeout("timed out")
        chunk = bytes(self._inbox[:size])
        del self._inbox[:size]
        return chunk

    def feed(self, data):
        self._inbox.extend(data)

    def close(self):
        self.closed = True


def ack(opcode, payload=b""):
    """A STATUS reply to ``opcode``."""
    return encode_frame(opcode, payload, Operator.STATUS)


def rejection(opcode, code):
    """An ERROR reply to ``opcode``."""
    return encode_frame(opcode, bytes([code]), Operator.ERROR)


HANDSHAKE_ACK = ack(Opcode.CONNECT, b"1.2.0")


@pytest.fixture
def make_socket():
    return FakeSocket


@pytest.fixture
def make_transport():
    def _make(sock, send_timeout=0.2, receive_timeout=0.2):
        return RfcommTransport(sock, send_timeout=send_timeout, receive_timeout=receive_timeout)

    return _make


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="based_connect")
    yield caplog
