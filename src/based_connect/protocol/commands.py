"""Opcode constants and high-level command builders.

Each opcode is a (function block, function) pair packed into 16 bits. The
same opcode is echoed by the device in its reply.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..models.settings import (
    AutoOff,
    NoiseCancelling,
    PromptLanguage,
    encode_name,
    truncate_name,
)
from .framing import CommandFrame, Operator


class Opcode(IntEnum):
    """Command identifiers."""

    CONNECT = 0x0001
    NAME = 0x0102
    PROMPT_LANGUAGE = 0x0103
    AUTO_OFF = 0x0104
    NOISE_CANCELLING = 0x0106


@dataclass(frozen=True)
class NameCommand:
    """A rename request together with what will actually be applied."""

    frame: CommandFrame
    name: str
    truncated: bool


def build_init() -> CommandFrame:
    """Build the handshake frame sent once after connecting."""
    return CommandFrame(Opcode.CONNECT, operator=Operator.GET)


def build_set_name(name: str) -> NameCommand:
    """Build a rename command.

    Names longer than ``MAX_NAME_LEN`` characters are cut down rather than
    rejected; ``truncated`` tells the caller this happened. Undecodable
    command-line bytes (surrogate-escaped by Python) are sent unchanged.

    Raises:
        ValidationError: If the name holds characters with no byte form.
    """
    effective, truncated = truncate_name(name)
    frame = CommandFrame(Opcode.NAME, encode_name(effective))
    return NameCommand(frame=frame, name=effective, truncated=truncated)


def build_set_noise_cancelling(level: NoiseCancelling) -> CommandFrame:
    return CommandFrame(Opcode.NOISE_CANCELLING, bytes([NoiseCancelling(level)]))


def build_set_auto_off(delay: AutoOff) -> CommandFrame:
    return CommandFrame(Opcode.AUTO_OFF, bytes([AutoOff(delay)]))


def build_set_prompt_language(language: PromptLanguage) -> CommandFrame:
    return CommandFrame(Opcode.PROMPT_LANGUAGE, bytes([PromptLanguage(language)]))
