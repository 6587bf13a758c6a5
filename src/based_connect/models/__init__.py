"""Data models for headset settings."""

from .settings import (
    MAX_NAME_LEN,
    AutoOff,
    NoiseCancelling,
    PromptLanguage,
    encode_name,
    truncate_name,
)
