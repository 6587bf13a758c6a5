"""Headset setting values and their on-wire codes.

Each enumeration's integer value is the byte the device expects, so the
mapping from setting to wire code is total by construction. The argument
tables translate command-line strings into members and are the only place
user input is validated.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import ValidationError

MAX_NAME_LEN = 31

# Set on a prompt language code to turn voice prompts on.
VOICE_PROMPTS_ON = 0x20


class NoiseCancelling(IntEnum):
    """Noise-cancelling level."""

    OFF = 0x00
    HIGH = 0x01
    LOW = 0x03

    @classmethod
    def from_arg(cls, arg: str) -> NoiseCancelling:
        return _lookup(NOISE_CANCELLING_ARGS, arg, "noise cancelling")


class AutoOff(IntEnum):
    """Auto power-off delay; the value is the delay in minutes."""

    NEVER = 0
    MIN_5 = 5
    MIN_20 = 20
    MIN_40 = 40
    MIN_60 = 60
    MIN_180 = 180

    @classmethod
    def from_arg(cls, arg: str) -> AutoOff:
        return _lookup(AUTO_OFF_ARGS, arg, "auto-off")


class PromptLanguage(IntEnum):
    """Voice-prompt language."""

    OFF = 0x01
    EN = 0x01 | VOICE_PROMPTS_ON
    FR = 0x02 | VOICE_PROMPTS_ON
    IT = 0x03 | VOICE_PROMPTS_ON
    DE = 0x04 | VOICE_PROMPTS_ON
    ES = 0x06 | VOICE_PROMPTS_ON
    PT = 0x07 | VOICE_PROMPTS_ON
    ZH = 0x08 | VOICE_PROMPTS_ON
    KO = 0x09 | VOICE_PROMPTS_ON
    NL = 0x0E | VOICE_PROMPTS_ON
    JA = 0x0F | VOICE_PROMPTS_ON
    SV = 0x12 | VOICE_PROMPTS_ON

    @property
    def prompts_enabled(self) -> bool:
        return bool(self & VOICE_PROMPTS_ON)

    @classmethod
    def from_arg(cls, arg: str) -> PromptLanguage:
        return _lookup(PROMPT_LANGUAGE_ARGS, arg, "prompt language")


NOISE_CANCELLING_ARGS: dict[str, NoiseCancelling] = {
    "high": NoiseCancelling.HIGH,
    "low": NoiseCancelling.LOW,
    "off": NoiseCancelling.OFF,
}

AUTO_OFF_ARGS: dict[str, AutoOff] = {
    "never": AutoOff.NEVER,
    "5": AutoOff.MIN_5,
    "20": AutoOff.MIN_20,
    "40": AutoOff.MIN_40,
    "60": AutoOff.MIN_60,
    "180": AutoOff.MIN_180,
}

PROMPT_LANGUAGE_ARGS: dict[str, PromptLanguage] = {
    "off": PromptLanguage.OFF,
    "en": PromptLanguage.EN,
    "fr": PromptLanguage.FR,
    "it": PromptLanguage.IT,
    "de": PromptLanguage.DE,
    "es": PromptLanguage.ES,
    "pt": PromptLanguage.PT,
    "zh": PromptLanguage.ZH,
    "ko": PromptLanguage.KO,
    "nl": PromptLanguage.NL,
    "ja": PromptLanguage.JA,
    "sv": PromptLanguage.SV,
}


def _lookup(table: dict, arg: str, label: str):
    try:
        return table[arg.strip().lower()]
    except KeyError:
        raise ValidationError(
            f"Invalid {label} argument: {arg} (choose from {', '.join(table)})"
        ) from None


def truncate_name(name: str) -> tuple[str, bool]:
    """Clip a device name to ``MAX_NAME_LEN`` characters.

    Returns:
        The effective name and whether anything was cut off.
    """
    if len(name) > MAX_NAME_LEN:
        return name[:MAX_NAME_LEN], True
    return name, False


def encode_name(name: str) -> bytes:
    """Return the bytes sent for ``name``.

    Command-line bytes that are not valid UTF-8 arrive surrogate-escaped and
    go out unchanged.

    Raises:
        ValidationError: If the name holds characters with no byte form.
    """
    try:
        return name.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError:
        raise ValidationError(f"Name {name!r} cannot be encoded") from None
