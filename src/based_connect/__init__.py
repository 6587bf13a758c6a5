"""Configure Bluetooth headphones over RFCOMM.

Renames the headset and sets its noise cancelling level, auto-off delay and
voice-prompt language.
"""

from .errors import BasedConnectError
from .models.settings import AutoOff, NoiseCancelling, PromptLanguage
from .session import CommandResult, CommandSession, SessionState, SetNameResult
from .transport.rfcomm import RfcommTransport, open_rfcomm

__all__ = [
    "AutoOff",
    "BasedConnectError",
    "CommandResult",
    "CommandSession",
    "NoiseCancelling",
    "PromptLanguage",
    "RfcommTransport",
    "SessionState",
    "SetNameResult",
    "open_rfcomm",
]

__version__ = "0.1.0"
