"""Protocol layer: packet framing, checksum, command builders, and response parsing."""

from .framing import Frame, FrameDecoder, PacketKind, build_frame
from .commands import COMMANDS, CommandSpec, LedColor, LedMode, Opcode, build_command
from .status import Status
