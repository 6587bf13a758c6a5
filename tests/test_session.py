"""Tests for the command session state machine."""

import pytest

from conftest import HANDSHAKE_ACK, ack, rejection

from based_connect.errors import (
    ChecksumMismatch,
    ConnectionClosed,
    DeviceRejected,
    InvalidPreamble,
    PayloadTooLarge,
    ReceiveTimeout,
    SessionStateError,
    ValidationError,
    UnexpectedOpcode,
)
from based_connect.models.settings import (
    MAX_NAME_LEN,
    AutoOff,
    NoiseCancelling,
    PromptLanguage,
)
from based_connect.protocol.commands import Opcode
from based_connect.protocol.framing import CommandFrame, ResponseFrame, decode_frame
from based_connect.session import CommandSession, SessionState, SetNameResult


def _session(make_socket, make_transport, *replies, **kwargs):
    sock = make_socket(replies=replies, **kwargs)
    return CommandSession(make_transport(sock)), sock


def _opcodes(sock):
    return [decode_frame(frame).opcode for frame in sock.sent]


def test_initial_state(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport)
    assert session.state is SessionState.DISCONNECTED
    assert session.protocol_version is None


def test_init_connection(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK)
    result = session.init_connection()
    assert result.ok
    assert session.state is SessionState.READY
    assert session.protocol_version == "1.2.0"
    assert sock.sent[0][2:6] == bytes([0x00, 0x01, 0x01, 0x00])


def test_init_connection_timeout(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport)
    result = session.init_connection()
    assert isinstance(result.error, ReceiveTimeout)
    assert session.state is SessionState.FAILED


def test_init_connection_rejected(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport, rejection(Opcode.CONNECT, 0x0A))
    result = session.init_connection()
    assert isinstance(result.error, DeviceRejected)
    assert result.error.code == 0x0A
    assert session.state is SessionState.FAILED


def test_init_connection_only_once(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK)
    session.init_connection()
    result = session.init_connection()
    assert isinstance(result.error, SessionStateError)
    assert len(sock.sent) == 1
    assert session.state is SessionState.READY


def test_setter_before_init(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport)
    result = session.set_auto_off(AutoOff.MIN_20)
    assert isinstance(result.error, SessionStateError)
    assert sock.sent == []
    assert session.state is SessionState.DISCONNECTED


def test_set_prompt_language_acknowledged(make_socket, make_transport):
    """Handshake, then French prompts acknowledged: success and still READY."""
    session, sock = _session(
        make_socket,
        make_transport,
        HANDSHAKE_ACK,
        ack(Opcode.PROMPT_LANGUAGE, bytes([PromptLanguage.FR, 0, 0, 0, 0])),
    )
    assert session.init_connection().ok
    result = session.set_prompt_language(PromptLanguage.FR)
    assert result.ok
    assert isinstance(result.response, ResponseFrame)
    assert session.state is SessionState.READY
    assert _opcodes(sock) == [Opcode.CONNECT, Opcode.PROMPT_LANGUAGE]
    assert sock.sent[1][6] == 0x22


def test_bad_checksum_stops_the_session(make_socket, make_transport):
    """A corrupt reply to the first setting means the second is never sent."""
    corrupt = bytearray(ack(Opcode.NOISE_CANCELLING, bytes([NoiseCancelling.HIGH, 0x0B])))
    corrupt[-1] ^= 0xFF
    session, sock = _session(
        make_socket,
        make_transport,
        HANDSHAKE_ACK,
        bytes(corrupt),
        ack(Opcode.AUTO_OFF, bytes([AutoOff.NEVER])),
    )
    session.init_connection()
    sent_before = len(sock.sent)

    results = session.apply([NoiseCancelling.HIGH, AutoOff.NEVER])

    assert len(sock.sent) - sent_before == 1
    assert len(results) == 1
    assert isinstance(results[0].error, ChecksumMismatch)
    assert session.state is SessionState.FAILED


def test_receive_timeout_stops_the_session(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK)
    session.init_connection()

    results = session.apply(["Office", PromptLanguage.EN, AutoOff.MIN_5])

    assert len(results) == 1
    assert isinstance(results[0].error, ReceiveTimeout)
    assert session.state is SessionState.FAILED
    assert _opcodes(sock) == [Opcode.CONNECT, Opcode.NAME]


def test_setters_refused_after_failure(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK)
    session.init_connection()
    session.set_noise_cancelling(NoiseCancelling.OFF)
    assert session.state is SessionState.FAILED

    result = session.set_auto_off(AutoOff.MIN_60)
    assert isinstance(result.error, SessionStateError)
    assert len(sock.sent) == 2


def test_apply_in_order(make_socket, make_transport):
    session, sock = _session(
        make_socket,
        make_transport,
        HANDSHAKE_ACK,
        ack(Opcode.AUTO_OFF, bytes([AutoOff.MIN_40])),
        ack(Opcode.NAME, b"Kitchen"),
        ack(Opcode.NOISE_CANCELLING, bytes([NoiseCancelling.LOW, 0x0B])),
    )
    session.init_connection()
    results = session.apply([AutoOff.MIN_40, "Kitchen", NoiseCancelling.LOW])

    assert all(result.ok for result in results)
    assert _opcodes(sock) == [
        Opcode.CONNECT,
        Opcode.AUTO_OFF,
        Opcode.NAME,
        Opcode.NOISE_CANCELLING,
    ]
    assert session.state is SessionState.READY


def test_apply_rejects_unknown_values(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport, HANDSHAKE_ACK)
    session.init_connection()
    with pytest.raises(TypeError):
        session.apply([42])


def test_device_rejection(make_socket, make_transport):
    session, _ = _session(
        make_socket, make_transport, HANDSHAKE_ACK, rejection(Opcode.AUTO_OFF, 0x06)
    )
    session.init_connection()
    result = session.set_auto_off(AutoOff.MIN_180)
    assert isinstance(result.error, DeviceRejected)
    assert result.error.code == 0x06
    assert session.state is SessionState.FAILED


def test_echo_mismatch_is_rejection(make_socket, make_transport):
    session, _ = _session(
        make_socket,
        make_transport,
        HANDSHAKE_ACK,
        ack(Opcode.NOISE_CANCELLING, bytes([NoiseCancelling.OFF, 0x0B])),
    )
    session.init_connection()
    result = session.set_noise_cancelling(NoiseCancelling.HIGH)
    assert isinstance(result.error, DeviceRejected)
    assert session.state is SessionState.FAILED


def test_reply_for_other_opcode(make_socket, make_transport):
    session, _ = _session(
        make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.AUTO_OFF, b"\x05")
    )
    session.init_connection()
    result = session.set_prompt_language(PromptLanguage.DE)
    assert isinstance(result.error, UnexpectedOpcode)
    assert session.state is SessionState.FAILED


def test_garbage_reply(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport, b"\x00" * 8)
    result = session.init_connection()
    assert isinstance(result.error, InvalidPreamble)
    assert session.state is SessionState.FAILED


def test_reply_split_across_reads(make_socket, make_transport):
    """A reply arriving in small pieces is reassembled."""
    session, _ = _session(
        make_socket,
        make_transport,
        HANDSHAKE_ACK,
        ack(Opcode.NAME, b"Den"),
        recv_limit=3,
    )
    assert session.init_connection().ok
    assert session.set_name("Den").ok


def test_connection_closed_mid_reply(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK[:4])
    sock.peer_closed = True
    result = session.init_connection()
    assert isinstance(result.error, ConnectionClosed)
    assert session.state is SessionState.FAILED


def test_set_name_truncated(make_socket, make_transport):
    name = "The Quick Brown Fox Jumps Over The Lazy Dog"
    session, sock = _session(
        make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.NAME, b"")
    )
    session.init_connection()
    result = session.set_name(name)

    assert isinstance(result, SetNameResult)
    assert result.ok
    assert result.truncated
    assert result.name == name[:MAX_NAME_LEN]
    assert decode_frame(sock.sent[1]).payload == name[:MAX_NAME_LEN].encode()


def test_set_name_not_truncated(make_socket, make_transport):
    session, _ = _session(make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.NAME))
    session.init_connection()
    result = session.set_name("Bose")
    assert result.ok
    assert not result.truncated
    assert result.name == "Bose"


def test_encode_failure_sends_nothing(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK)
    session.init_connection()
    result = session._run(CommandFrame(Opcode.NAME, bytes(300)))
    assert isinstance(result.error, PayloadTooLarge)
    assert len(sock.sent) == 1
    assert session.state is SessionState.FAILED


def test_context_manager_closes_transport(make_socket, make_transport):
    sock = make_socket()
    with CommandSession(make_transport(sock)) as session:
        session.init_connection()
    assert sock.closed
    assert session.state is SessionState.FAILED


def test_set_name_with_undecodable_bytes(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.NAME))
    session.init_connection()
    result = session.set_name("Caf\udce9")
    assert result.ok
    assert session.state is SessionState.READY
    assert decode_frame(sock.sent[1]).payload == b"Caf\xe9"


def test_set_name_unencodable_fails_session(make_socket, make_transport):
    session, sock = _session(make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.NAME))
    session.init_connection()
    result = session.set_name("\ud800")
    assert isinstance(result.error, ValidationError)
    assert result.opcode == Opcode.NAME
    assert session.state is SessionState.FAILED
    assert len(sock.sent) == 1
    assert isinstance(session.set_noise_cancelling(NoiseCancelling.LOW).error, SessionStateError)


def test_truncation_logged_at_info(make_socket, make_transport, caplog):
    session, _ = _session(make_socket, make_transport, HANDSHAKE_ACK, ack(Opcode.NAME))
    session.init_connection()
    session.set_name("n" * 40)
    records = [r for r in caplog.records if "truncated" in r.getMessage()]
    assert [r.levelname for r in records] == ["INFO"]
