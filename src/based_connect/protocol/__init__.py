"""Protocol layer: message framing, CRC, command builders, and reply parsing."""

from .framing import CommandFrame, ResponseFrame, decode_frame, encode_frame
from .commands import Opcode
