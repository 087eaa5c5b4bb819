"""Transaction outcome codes.

Values below 0x80 are confirmation codes reported by the sensor in the first
payload byte of an acknowledge packet. The values at the top of the byte
range are host-side protocol outcomes that never appear on the wire.
"""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Outcome of a decode or a command transaction."""

    OK = 0x00
    RECEIVE_ERROR = 0x01
    NO_FINGER = 0x02
    IMAGE_FAIL = 0x03
    IMAGE_MESSY = 0x06
    FEATURE_FAIL = 0x07
    NO_MATCH = 0x08
    NOT_FOUND = 0x09
    ENROLL_MISMATCH = 0x0A
    BAD_LOCATION = 0x0B
    DB_READ_FAIL = 0x0C
    UPLOAD_FEATURE_FAIL = 0x0D
    PACKET_RESPONSE_FAIL = 0x0E
    UPLOAD_FAIL = 0x0F
    DELETE_FAIL = 0x10
    DB_CLEAR_FAIL = 0x11
    PASSWORD_FAIL = 0x13
    INVALID_IMAGE = 0x15
    FLASH_ERROR = 0x18
    INVALID_REGISTER = 0x1A
    ADDRESS_CODE = 0x20
    PASSWORD_VERIFY = 0x21

    # Host-side outcomes
    UNKNOWN = 0xFC
    CHECKSUM_MISMATCH = 0xFD
    BAD_FRAME = 0xFE
    TIMEOUT = 0xFF

    @classmethod
    def from_code(cls, code: int) -> Status:
        """Map a confirmation code from the sensor, ``UNKNOWN`` if unlisted."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def ok(self) -> bool:
        return self is Status.OK

    @property
    def description(self) -> str:
        return _DESCRIPTIONS.get(self, self.name.replace("_", " ").lower())


_DESCRIPTIONS: dict[Status, str] = {
    Status.OK: "OK",
    Status.RECEIVE_ERROR: "Communication error",
    Status.NO_FINGER: "No finger detected",
    Status.IMAGE_FAIL: "Imaging error",
    Status.IMAGE_MESSY: "Image too messy",
    Status.FEATURE_FAIL: "Could not find fingerprint features",
    Status.NO_MATCH: "Fingerprints do not match",
    Status.NOT_FOUND: "Did not find a match",
    Status.ENROLL_MISMATCH: "Fingerprints did not match during enroll",
    Status.BAD_LOCATION: "Could not store in that location",
    Status.DB_READ_FAIL: "Error reading template from library",
    Status.UPLOAD_FEATURE_FAIL: "Error uploading template",
    Status.PACKET_RESPONSE_FAIL: "Module could not receive the following data packets",
    Status.UPLOAD_FAIL: "Error uploading image",
    Status.DELETE_FAIL: "Could not delete template",
    Status.DB_CLEAR_FAIL: "Could not clear template library",
    Status.PASSWORD_FAIL: "Wrong password",
    Status.INVALID_IMAGE: "Invalid image",
    Status.FLASH_ERROR: "Error writing to flash",
    Status.INVALID_REGISTER: "Invalid register number",
    Status.ADDRESS_CODE: "Address code mismatch",
    Status.PASSWORD_VERIFY: "Password must be verified first",
    Status.UNKNOWN: "Unknown error",
    Status.CHECKSUM_MISMATCH: "Packet checksum mismatch",
    Status.BAD_FRAME: "Malformed packet",
    Status.TIMEOUT: "Timed out waiting for packet",
}
