"""Protocol layer: frame codec, command builders, and reply parsing."""

from .framing import FRAME_SIZE, Frame, decode, encode
from .commands import Command, Opcode, BUSY_SELECTOR
