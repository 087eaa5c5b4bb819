"""MCP server entry point for the fingerprint sensor.

Exposes the sensor command set as tools, plus cached state as resources,
via the Model Context Protocol using the official Python MCP SDK with stdio
transport.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import config
from .protocol.status import Status
from .sensor import FingerprintSensor
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "fingerprint-uart",
    instructions="MCP server for an R503-style UART fingerprint sensor",
)

# Global connection state
_connection: SerialConnection | None = None
_sensor: FingerprintSensor | None = None
# One transaction on the wire at a time
_lock = threading.Lock()


def _get_sensor() -> FingerprintSensor:
    """Get the active sensor, raising if not connected."""
    if _sensor is None:
        raise RuntimeError(
            "Not connected to sensor. Use the 'connect' tool first."
        )
    return _sensor


def _result(status: Status, **outputs: Any) -> dict[str, Any]:
    return {
        "status": status.name,
        "ok": status.ok,
        "message": status.description,
        **outputs,
    }


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str | None = None, baud_rate: int | None = None) -> dict[str, Any]:
    """Open the serial link to the sensor and run the startup handshake.

    Verifies the configured password, then reads the system parameters.

    Args:
        port: Serial device, defaults to FINGERPRINT_PORT.
        baud_rate: Link speed, defaults to FINGERPRINT_BAUD_RATE.
    """
    global _connection, _sensor
    with _lock:
        if _sensor is not None:
            return {
                "connected": True,
                "message": "Already connected",
                "parameters": _sensor.parameters.to_dict(),
            }

        connection = SerialConnection(
            port=port or config.port,
            baud_rate=baud_rate or config.baud_rate,
            buffer_size=config.buffer_size,
        )
        info = connection.open()
        sensor = FingerprintSensor(
            connection,
            password=config.password,
            address=config.address,
            timeout_ms=config.timeout_ms,
            verify_checksum=config.verify_checksum,
        )
        try:
            params = sensor.begin()
        except Exception:
            logger.warning("Startup handshake on %s failed, closing port", info.port)
            connection.close()
            raise

        _connection, _sensor = connection, sensor
        return {
            "connected": True,
            "port": info.port,
            "baud_rate": info.baud_rate,
            "parameters": params.to_dict(),
        }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial link to the sensor."""
    global _connection, _sensor
    with _lock:
        if _connection is not None:
            _connection.close()
        _connection = None
        _sensor = None
    return {"disconnected": True}


# ─── DEVICE INFO TOOLS ────────────────────────────────────────────────

@mcp.tool()
def get_parameters() -> dict[str, Any]:
    """Read the sensor's system parameters (capacity, security level, baud rate...)."""
    with _lock:
        sensor = _get_sensor()
        result = sensor.query_parameters()
    if result.parameters is None:
        return _result(result.status)
    return _result(result.status, parameters=result.parameters.to_dict())


@mcp.tool()
def get_template_count() -> dict[str, Any]:
    """Count the templates stored in the sensor library."""
    with _lock:
        sensor = _get_sensor()
        result = sensor.template_count()
    return _result(result.status, count=result.count)


# ─── ENROLLMENT TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def capture_image() -> dict[str, Any]:
    """Capture a finger image. Returns NO_FINGER if the sensor is empty."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.capture_image())


@mcp.tool()
def extract_features(slot: int = 1) -> dict[str, Any]:
    """Convert the last captured image into a template in buffer 1 or 2."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.extract_features(slot))


@mcp.tool()
def create_model() -> dict[str, Any]:
    """Combine template buffers 1 and 2 into one model."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.create_model())


@mcp.tool()
def store_model(location: int, slot: int = 1) -> dict[str, Any]:
    """Store a template buffer at a library location.

    Args:
        location: Library page, 0 up to the sensor capacity.
        slot: Template buffer (1 or 2).
    """
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.store_model(location, slot), location=location)


@mcp.tool()
def load_model(location: int, slot: int = 1) -> dict[str, Any]:
    """Load a stored template into a template buffer."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.load_model(location, slot), location=location)


@mcp.tool()
def download_model(location: int) -> dict[str, Any]:
    """Load a stored template and return its raw bytes as hex."""
    with _lock:
        sensor = _get_sensor()
        status = sensor.load_model(location)
        if not status.ok:
            return _result(status, location=location)
        status, template = sensor.download_model()
    return _result(status, location=location, template=template.hex())


@mcp.tool()
def delete_model(location: int) -> dict[str, Any]:
    """Delete the template stored at a library location."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.delete_model(location), location=location)


@mcp.tool()
def empty_database() -> dict[str, Any]:
    """Delete every template stored on the sensor."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.empty_database())


# ─── SEARCH TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def search(slot: int = 1) -> dict[str, Any]:
    """Search the library for the template in a buffer.

    Searches pages 0 through the cached sensor capacity.
    """
    with _lock:
        sensor = _get_sensor()
        result = sensor.search(slot)
    return _result(result.status, finger_id=result.finger_id, confidence=result.confidence)


@mcp.tool()
def fast_search() -> dict[str, Any]:
    """High-speed search of buffer 1 over pages 0-0xA3."""
    with _lock:
        sensor = _get_sensor()
        result = sensor.fast_search()
    return _result(result.status, finger_id=result.finger_id, confidence=result.confidence)


# ─── SETTINGS TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def set_led(on: bool) -> dict[str, Any]:
    """Switch the sensor LED on or off."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.led_control(on))


@mcp.tool()
def set_aura_led(mode: int, speed: int, color: int, count: int = 0) -> dict[str, Any]:
    """Configure the Aura ring LED.

    Args:
        mode: 1 breathing, 2 flashing, 3 on, 4 off, 5 gradual on, 6 gradual off.
        speed: Cycle speed 0-255.
        color: 1 red, 2 blue, 3 purple.
        count: Number of cycles, 0 for endless.
    """
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.aura_led_control(mode, speed, color, count))


@mcp.tool()
def set_password(password: int) -> dict[str, Any]:
    """Set a new 32-bit module password. Future connections must use it."""
    with _lock:
        sensor = _get_sensor()
        return _result(sensor.set_password(password))


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("fingerprint://device/parameters")
def resource_parameters() -> str:
    """Last known system parameters of the sensor."""
    if _sensor is None:
        return json.dumps({"error": "Not connected"})
    return json.dumps(_sensor.parameters.to_dict(), indent=2)


@mcp.resource("fingerprint://device/status")
def resource_device_status() -> str:
    """Current connection status."""
    if _connection is None:
        return json.dumps({"connected": False})
    info = _connection.port_info
    return json.dumps(
        {"connected": _connection.connected, "port": info.port, "baud_rate": info.baud_rate},
        indent=2,
    )


# ─── PROMPTS ──────────────────────────────────────────────────────────

@mcp.prompt()
def enroll_finger(location: int) -> str:
    """Walk through enrolling a new finger at a library location."""
    return f"""Enroll a new fingerprint at library location {location}.

1. Call capture_image repeatedly until it returns OK (NO_FINGER means keep waiting).
2. Call extract_features with slot 1.
3. Ask the user to lift the finger, wait until capture_image returns NO_FINGER.
4. Capture the same finger again and call extract_features with slot 2.
5. Call create_model. ENROLL_MISMATCH means the two captures differ: start over.
6. Call store_model with location {location}.

Report any status other than OK or NO_FINGER to the user with its message."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
