"""Tests for the MCP tool functions against a simulated sensor."""

from __future__ import annotations

import json
import sys
import time
from unittest.mock import MagicMock, patch

import pytest
import serial

from fingerprint_uart.protocol.framing import HEADER_SIZE, PacketKind, build_frame
from fingerprint_uart.sensor import FingerprintSensor
from test_parser import SYS_PARAMS

SERIAL_CLASS = "fingerprint_uart.transport.serial_connection.serial.Serial"


def _scripted_port(replies: list[bytes]) -> MagicMock:
    """Fake pyserial port that queues the next reply after each full command packet."""
    chunks: list[bytes] = []
    pending = bytearray()
    port = MagicMock()
    port.is_open = True
    port.in_waiting = 0

    def read(size=1):
        if chunks:
            return chunks.pop(0)
        time.sleep(0.001)
        return b""

    def write(data):
        pending.extend(data)
        if len(pending) >= HEADER_SIZE:
            end = HEADER_SIZE + int.from_bytes(pending[7:9], "big")
            if len(pending) >= end:
                del pending[:end]
                if replies:
                    chunks.append(replies.pop(0))
        return len(data)

    port.read.side_effect = read
    port.write.side_effect = write
    return port


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        # Remove cached server module so it re-imports with our mock
        sys.modules.pop("fingerprint_uart.server", None)
        import fingerprint_uart.server as server_mod

    return server_mod


@pytest.fixture
def server(link):
    server_mod = _get_server_module()
    server_mod._sensor = FingerprintSensor(link, timeout_ms=50, clock=link.clock)
    yield server_mod
    server_mod._sensor = None
    server_mod._connection = None


def test_tools_require_connection():
    server_mod = _get_server_module()
    with pytest.raises(RuntimeError):
        server_mod.capture_image()


def test_template_count_tool(server, link):
    link.reply(bytes([0x00, 0x00, 0x05]))
    assert server.get_template_count() == {
        "status": "OK",
        "ok": True,
        "message": "OK",
        "count": 5,
    }


def test_search_tool_not_found(server, link):
    link.reply(bytes([0x09, 0xFF, 0xFF, 0xFF, 0xFF]))
    result = server.search(slot=1)
    assert result["status"] == "NOT_FOUND"
    assert result["ok"] is False
    assert result["finger_id"] == 0xFFFF
    assert result["message"] == "Did not find a match"


def test_capture_image_no_finger(server, link):
    link.reply(bytes([0x02]))
    result = server.capture_image()
    assert result["status"] == "NO_FINGER"
    assert result["message"] == "No finger detected"


def test_download_model_tool(server, link):
    link.reply(bytes([0x00]))
    link.reply_raw(
        build_frame(PacketKind.ACK, bytes([0x00]))
        + build_frame(PacketKind.END_DATA, bytes([0xAB, 0xCD]))
    )
    result = server.download_model(location=4)
    assert result["ok"] is True
    assert result["template"] == "abcd"
    assert link.command_payloads[0] == bytes([0x07, 0x01, 0x00, 0x04])


def test_parameters_resource(server, link):
    data = json.loads(server.resource_parameters())
    assert data["capacity"] == 64
    assert data["device_address"] == "0xFFFFFFFF"


def test_disconnect_clears_state(server):
    connection = MagicMock()
    server._connection = connection
    assert server.disconnect() == {"disconnected": True}
    connection.close.assert_called_once()
    assert server._sensor is None


def test_connect_runs_handshake():
    server_mod = _get_server_module()
    port = _scripted_port([
        build_frame(PacketKind.ACK, bytes([0x00])),
        build_frame(PacketKind.ACK, SYS_PARAMS),
        build_frame(PacketKind.ACK, bytes([0x00, 0x00, 0x05])),
    ])
    with patch(SERIAL_CLASS, return_value=port):
        try:
            result = server_mod.connect(port="/dev/ttyTEST", baud_rate=57600)
            assert result["connected"] is True
            assert result["port"] == "/dev/ttyTEST"
            assert result["parameters"]["capacity"] == 200
            assert server_mod._sensor is not None
        finally:
            server_mod.disconnect()
    port.close.assert_called_once()


def test_connect_closes_port_when_write_fails():
    """A serial error during the handshake releases the port and reader thread."""
    server_mod = _get_server_module()
    port = _scripted_port([])
    port.write.side_effect = serial.SerialException("device disconnected")
    with patch(SERIAL_CLASS, return_value=port):
        with pytest.raises(serial.SerialException):
            server_mod.connect(port="/dev/ttyTEST", baud_rate=57600)
    port.close.assert_called_once()
    assert server_mod._connection is None
    assert server_mod._sensor is None


def test_connect_closes_port_when_password_rejected():
    server_mod = _get_server_module()
    port = _scripted_port([build_frame(PacketKind.ACK, bytes([0x13]))])
    with patch(SERIAL_CLASS, return_value=port):
        with pytest.raises(ConnectionError):
            server_mod.connect(port="/dev/ttyTEST", baud_rate=57600)
    port.close.assert_called_once()
    assert server_mod._connection is None


def test_tools_fetch_sensor_under_lock(server, link):
    """The sensor is looked up while the lock is held, so disconnect cannot race it."""
    sensor = server._sensor
    seen = []

    def locked_get_sensor():
        seen.append(server._lock.locked())
        return sensor

    link.reply(bytes([0x00, 0x00, 0x05]))
    link.reply(bytes([0x02]))
    with patch.object(server, "_get_sensor", side_effect=locked_get_sensor):
        server.get_template_count()
        server.capture_image()
    assert seen == [True, True]
