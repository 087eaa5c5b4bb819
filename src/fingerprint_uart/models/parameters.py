"""Sensor system parameters reported by ReadSysPara (0x0F)."""

from __future__ import annotations

from dataclasses import asdict, dataclass

BROADCAST_ADDRESS = 0xFFFFFFFF

BAUD_UNIT = 9600

# Packet size register code -> maximum data packet payload in bytes
PACKET_SIZES = {0: 32, 1: 64, 2: 128, 3: 256}


@dataclass
class SensorParameters:
    """Host-side copy of the sensor's system parameters.

    Defaults are the values assumed before the first query.
    """

    status_register: int = 0x0
    system_id: int = 0x0
    capacity: int = 64
    security_level: int = 0
    device_address: int = BROADCAST_ADDRESS
    packet_size: int = 64
    baud_rate: int = 57600

    @classmethod
    def from_fields(
        cls,
        status_register: int,
        system_id: int,
        capacity: int,
        security_level: int,
        device_address: int,
        packet_size_code: int,
        baud_multiplier: int,
    ) -> SensorParameters:
        """Build from the raw register fields of a ReadSysPara response.

        Packet size codes outside 0-3 are kept as-is.
        """
        return cls(
            status_register=status_register,
            system_id=system_id,
            capacity=capacity,
            security_level=security_level,
            device_address=device_address,
            packet_size=PACKET_SIZES.get(packet_size_code, packet_size_code),
            baud_rate=baud_multiplier * BAUD_UNIT,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status_register"] = f"0x{self.status_register:04X}"
        data["system_id"] = f"0x{self.system_id:04X}"
        data["device_address"] = f"0x{self.device_address:08X}"
        return data
