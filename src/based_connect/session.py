"""Command session: handshake and setting changes over one connection.

The session is a small state machine::

    DISCONNECTED -> INITIALIZING -> READY -> APPLYING -> READY
                          |                     |
                          +------> FAILED <-----+

Exactly one request is in flight at a time. The first failure moves the
session to FAILED, after which nothing more is sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .errors import (
    BasedConnectError,
    ProtocolDecodeError,
    ProtocolEncodeError,
    SessionStateError,
    TransportError,
    Truncated,
    ValidationError,
)
from .models.settings import AutoOff, NoiseCancelling, PromptLanguage
from .protocol.commands import (
    Opcode,
    build_init,
    build_set_auto_off,
    build_set_name,
    build_set_noise_cancelling,
    build_set_prompt_language,
)
from .protocol.framing import HEADER_SIZE, CommandFrame, ResponseFrame, decode_frame
from .protocol.parser import check_echo, device_error, parse_handshake

logger = logging.getLogger(__name__)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    INITIALIZING = "initializing"
    READY = "ready"
    APPLYING = "applying"
    FAILED = "failed"


@dataclass
class CommandResult:
    """Outcome of one protocol exchange."""

    opcode: int
    error: BasedConnectError | None = None
    response: ResponseFrame | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SetNameResult(CommandResult):
    """Outcome of a rename, with the name that was actually sent."""

    name: str = ""
    truncated: bool = False


class CommandSession:
    """Drives the headset protocol over an ``RfcommTransport``.

    Usage::

        with CommandSession(open_rfcomm(address)) as session:
            if session.init_connection().ok:
                session.set_noise_cancelling(NoiseCancelling.HIGH)

    The transport is closed when the ``with`` block exits, whatever state the
    session ended in.
    """

    def __init__(self, transport) -> None:
        self._transport = transport
        self._state = SessionState.DISCONNECTED
        self._protocol_version: str | None = None
        self._setters = {
            str: self.set_name,
            NoiseCancelling: self.set_noise_cancelling,
            AutoOff: self.set_auto_off,
            PromptLanguage: self.set_prompt_language,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def protocol_version(self) -> str | None:
        """Protocol version reported by the device during the handshake."""
        return self._protocol_version

    def init_connection(self) -> CommandResult:
        """Send the handshake. Must succeed once before any setter."""
        command = build_init()
        if self._state is not SessionState.DISCONNECTED:
            return CommandResult(
                command.opcode,
                error=SessionStateError(
                    f"Handshake not allowed in state {self._state.value}"
                ),
            )

        self._state = SessionState.INITIALIZING
        result = self._exchange(command)
        if result.ok:
            handshake = parse_handshake(result.response)
            if handshake is not None:
                self._protocol_version = handshake.protocol_version
            logger.info("Handshake complete (protocol %s)", self._protocol_version)
        return result

    def set_name(self, name: str) -> SetNameResult:
        try:
            command = build_set_name(name)
        except ValidationError as e:
            if self._state is SessionState.READY:
                self._fail(Opcode.NAME, e)
            return SetNameResult(opcode=Opcode.NAME, error=e, name=name)
        if command.truncated:
            logger.info("Name truncated to %r", command.name)
        result = self._run(command.frame)
        return SetNameResult(
            opcode=result.opcode,
            error=result.error,
            response=result.response,
            name=command.name,
            truncated=command.truncated,
        )

    def set_noise_cancelling(self, level: NoiseCancelling) -> CommandResult:
        return self._run(build_set_noise_cancelling(level), echo=level)

    def set_auto_off(self, delay: AutoOff) -> CommandResult:
        return self._run(build_set_auto_off(delay), echo=delay)

    def set_prompt_language(self, language: PromptLanguage) -> CommandResult:
        return self._run(build_set_prompt_language(language), echo=language)

    def apply(self, values: Iterable) -> list[CommandResult]:
        """Apply settings in order, stopping after the first failure.

        Each value is a name (``str``) or a member of one of the setting
        enumerations.
        """
        results = []
        for value in values:
            setter = self._setters.get(type(value))
            if setter is None:
                raise TypeError(f"Unsupported setting value: {value!r}")
            result = setter(value)
            results.append(result)
            if not result.ok:
                break
        return results

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> CommandSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def _run(self, command: CommandFrame, echo: int | None = None) -> CommandResult:
        if self._state is not SessionState.READY:
            if self._state is SessionState.FAILED:
                message = "A previous command failed; no further commands are sent"
            else:
                message = f"Connection not initialized (state {self._state.value})"
            return CommandResult(command.opcode, error=SessionStateError(message))

        self._state = SessionState.APPLYING
        result = self._exchange(command)
        if result.ok and echo is not None:
            mismatch = check_echo(result.response, echo)
            if mismatch is not None:
                return self._fail(command.opcode, mismatch)
        return result

    def _exchange(self, command: CommandFrame) -> CommandResult:
        """Send one frame and interpret the reply."""
        try:
            self._transport.send(command.to_bytes())
            response = self._read_response(command.opcode)
        except (ProtocolEncodeError, TransportError) as e:
            return self._fail(command.opcode, e)

        if isinstance(response, ProtocolDecodeError):
            return self._fail(command.opcode, response)

        rejected = device_error(response)
        if rejected is not None:
            return self._fail(command.opcode, rejected)

        logger.debug("Opcode 0x%04X acknowledged", command.opcode)
        self._state = SessionState.READY
        return CommandResult(command.opcode, response=response)

    def _read_response(self, opcode: int) -> ResponseFrame | ProtocolDecodeError:
        data = self._transport.receive(HEADER_SIZE)
        response = decode_frame(data, expected=opcode)
        if isinstance(response, Truncated):
            data += self._transport.receive(response.needed)
            response = decode_frame(data, expected=opcode)
        return response

    def _fail(self, opcode: int, error: BasedConnectError) -> CommandResult:
        logger.info("Opcode 0x%04X failed: %s: %s", opcode, error.kind, error)
        self._state = SessionState.FAILED
        return CommandResult(opcode, error=error)
