"""Instruction codes and command payload builders.

Every command is a command packet whose payload starts with a one-byte
instruction code followed by fixed big-endian parameters. The sensor answers
with an acknowledge packet whose first payload byte is a confirmation code,
optionally followed by fixed big-endian result fields. Both layouts are
described per command by a :class:`CommandSpec` in :data:`COMMANDS`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum


class Opcode(IntEnum):
    """Sensor instruction codes."""

    GET_IMAGE = 0x01
    IMAGE_TO_TEMPLATE = 0x02
    SEARCH = 0x04
    REG_MODEL = 0x05
    STORE = 0x06
    LOAD = 0x07
    UPLOAD = 0x08
    DELETE = 0x0C
    EMPTY = 0x0D
    READ_SYS_PARAM = 0x0F
    SET_PASSWORD = 0x12
    VERIFY_PASSWORD = 0x13
    HISPEED_SEARCH = 0x1B
    TEMPLATE_COUNT = 0x1D
    AURA_LED_CONFIG = 0x35
    LED_ON = 0x50
    LED_OFF = 0x51


class LedMode(IntEnum):
    """Aura LED control codes."""

    BREATHING = 0x01
    FLASHING = 0x02
    ON = 0x03
    OFF = 0x04
    GRADUAL_ON = 0x05
    GRADUAL_OFF = 0x06


class LedColor(IntEnum):
    RED = 0x01
    BLUE = 0x02
    PURPLE = 0x03


@dataclass(frozen=True)
class CommandSpec:
    """Wire layout of one command.

    ``request`` and ``response`` are :mod:`struct` format strings (without
    byte-order prefix) for the parameters after the opcode and for the
    result fields after the confirmation code.
    """

    opcode: Opcode
    request: str = ""
    response: str = ""

    @property
    def response_size(self) -> int:
        return struct.calcsize(">" + self.response)

    def pack(self, *params: int) -> bytes:
        return bytes([self.opcode]) + struct.pack(">" + self.request, *params)

    def unpack(self, payload: bytes) -> tuple[int, ...] | None:
        """Parse result fields from an acknowledge payload.

        Returns ``None`` if the payload is too short to hold them.
        """
        fields = payload[1 : 1 + self.response_size]
        if len(fields) < self.response_size:
            return None
        return struct.unpack(">" + self.response, fields)


COMMANDS: dict[str, CommandSpec] = {
    "capture_image": CommandSpec(Opcode.GET_IMAGE),
    "extract_features": CommandSpec(Opcode.IMAGE_TO_TEMPLATE, "B"),
    "create_model": CommandSpec(Opcode.REG_MODEL),
    "store_model": CommandSpec(Opcode.STORE, "BH"),
    "load_model": CommandSpec(Opcode.LOAD, "BH"),
    "upload_model": CommandSpec(Opcode.UPLOAD, "B"),
    "delete_model": CommandSpec(Opcode.DELETE, "HH"),
    "empty_database": CommandSpec(Opcode.EMPTY),
    "fast_search": CommandSpec(Opcode.HISPEED_SEARCH, "BHH", "HH"),
    "search": CommandSpec(Opcode.SEARCH, "BHH", "HH"),
    "template_count": CommandSpec(Opcode.TEMPLATE_COUNT, "", "H"),
    "set_password": CommandSpec(Opcode.SET_PASSWORD, "I"),
    "check_password": CommandSpec(Opcode.VERIFY_PASSWORD, "I"),
    "query_parameters": CommandSpec(Opcode.READ_SYS_PARAM, "", "HHHHIHH"),
    "led_on": CommandSpec(Opcode.LED_ON),
    "led_off": CommandSpec(Opcode.LED_OFF),
    "aura_led": CommandSpec(Opcode.AURA_LED_CONFIG, "BBBB"),
}

FAST_SEARCH_START = 0x0000
FAST_SEARCH_COUNT = 0x00A3


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueError(f"{name} must be {low}-{high}, got {value}")


def _check_slot(slot: int) -> None:
    if slot not in (1, 2):
        raise ValueError(f"Template buffer slot must be 1 or 2, got {slot}")


def build_command(name: str, *params: int) -> bytes:
    """Build the command packet payload for a named command."""
    try:
        spec = COMMANDS[name]
    except KeyError:
        raise ValueError(f"Unknown command '{name}'. Valid: {list(COMMANDS)}") from None
    return spec.pack(*params)


def build_capture_image() -> bytes:
    """Build a GetImage command: capture a finger image into the image buffer."""
    return build_command("capture_image")


def build_extract_features(slot: int = 1) -> bytes:
    """Build an Img2Tz command converting the image into template buffer ``slot``."""
    _check_slot(slot)
    return build_command("extract_features", slot)


def build_create_model() -> bytes:
    return build_command("create_model")


def build_store_model(location: int, slot: int = 1) -> bytes:
    """Build a Store command writing template buffer ``slot`` to flash.

    Args:
        location: Library page 0-65535.
        slot: Template buffer (1 or 2).
    """
    _check_slot(slot)
    _check_range("Location", location, 0, 0xFFFF)
    return build_command("store_model", slot, location)


def build_load_model(location: int, slot: int = 1) -> bytes:
    """Build a LoadChar command reading a library page into buffer ``slot``."""
    _check_slot(slot)
    _check_range("Location", location, 0, 0xFFFF)
    return build_command("load_model", slot, location)


def build_upload_model(slot: int = 1) -> bytes:
    """Build an UpChar command streaming template buffer ``slot`` to the host."""
    _check_slot(slot)
    return build_command("upload_model", slot)


def build_delete_model(location: int, count: int = 1) -> bytes:
    _check_range("Location", location, 0, 0xFFFF)
    _check_range("Count", count, 1, 0xFFFF)
    return build_command("delete_model", location, count)


def build_empty_database() -> bytes:
    return build_command("empty_database")


def build_fast_search() -> bytes:
    """Build a high-speed search of buffer 1 over pages 0x0000-0x00A3."""
    return build_command("fast_search", 1, FAST_SEARCH_START, FAST_SEARCH_COUNT)


def build_search(slot: int = 1, capacity: int = 64) -> bytes:
    """Build a search of buffer ``slot`` over pages 0 through ``capacity``."""
    _check_slot(slot)
    _check_range("Capacity", capacity, 0, 0xFFFF)
    return build_command("search", slot, 0, capacity)


def build_template_count() -> bytes:
    return build_command("template_count")


def build_set_password(password: int) -> bytes:
    _check_range("Password", password, 0, 0xFFFFFFFF)
    return build_command("set_password", password)


def build_check_password(password: int) -> bytes:
    _check_range("Password", password, 0, 0xFFFFFFFF)
    return build_command("check_password", password)


def build_query_parameters() -> bytes:
    return build_command("query_parameters")


def build_led(on: bool) -> bytes:
    """Build a plain LED on/off command."""
    return build_command("led_on" if on else "led_off")


def build_aura_led(mode: int, speed: int, color: int, count: int = 0) -> bytes:
    """Build an Aura LED configuration command.

    Args:
        mode: Control code, see :class:`LedMode`.
        speed: Breathing/flashing cycle speed 0-255.
        color: Color index, see :class:`LedColor`.
        count: Number of cycles, 0 for endless.
    """
    for name, value in (("Mode", mode), ("Speed", speed), ("Color", color), ("Count", count)):
        _check_range(name, value, 0, 0xFF)
    return build_command("aura_led", mode, speed, color, count)
