"""Runtime configuration read from the environment (and a ``.env`` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _int(value: str) -> int:
    """Parse decimal or ``0x``-prefixed hex."""
    return int(value, 0)


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Sensor connection settings."""

    port: str = "/dev/ttyUSB0"
    baud_rate: int = 57600
    password: int = 0x00000000
    address: int = 0xFFFFFFFF
    timeout_ms: int = 1000
    buffer_size: int = 512
    verify_checksum: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Build a config from ``FINGERPRINT_*`` environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ
        defaults = cls()
        return cls(
            port=env.get("FINGERPRINT_PORT", defaults.port),
            baud_rate=_int(env.get("FINGERPRINT_BAUD_RATE", str(defaults.baud_rate))),
            password=_int(env.get("FINGERPRINT_PASSWORD", str(defaults.password))),
            address=_int(env.get("FINGERPRINT_ADDRESS", str(defaults.address))),
            timeout_ms=_int(env.get("FINGERPRINT_TIMEOUT_MS", str(defaults.timeout_ms))),
            buffer_size=_int(env.get("FINGERPRINT_BUFFER_SIZE", str(defaults.buffer_size))),
            verify_checksum=_bool(
                env.get("FINGERPRINT_VERIFY_CHECKSUM", str(defaults.verify_checksum))
            ),
            log_level=env.get("FINGERPRINT_LOG_LEVEL", defaults.log_level).upper(),
        )


# Global configuration instance
config = Config.from_env()
