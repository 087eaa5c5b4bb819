"""Response parsing for acknowledge packets."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.parameters import SensorParameters
from .commands import COMMANDS
from .framing import Frame
from .status import Status

NO_MATCH_ID = 0xFFFF


@dataclass
class SearchResult:
    """Parsed Search (0x04) / HighSpeedSearch (0x1B) response."""

    status: Status
    finger_id: int = NO_MATCH_ID
    confidence: int = NO_MATCH_ID

    @property
    def found(self) -> bool:
        return self.status is Status.OK


@dataclass
class TemplateCountResult:
    """Parsed TempleteNum (0x1D) response."""

    status: Status
    count: int = 0


@dataclass
class ParametersResult:
    """Parsed ReadSysPara (0x0F) response."""

    status: Status
    parameters: SensorParameters | None = None


def parse_status(frame: Frame) -> Status:
    """Return the confirmation code carried by an acknowledge packet."""
    if not frame.payload:
        return Status.RECEIVE_ERROR
    return Status.from_code(frame.payload[0])


def parse_search(frame: Frame) -> SearchResult:
    """Parse a search response.

    Match id and confidence stay at ``0xFFFF`` unless the payload carries
    both fields.
    """
    result = SearchResult(status=parse_status(frame))
    fields = COMMANDS["search"].unpack(frame.payload)
    if fields is not None:
        result.finger_id, result.confidence = fields
    return result


def parse_template_count(frame: Frame) -> TemplateCountResult:
    result = TemplateCountResult(status=parse_status(frame))
    fields = COMMANDS["template_count"].unpack(frame.payload)
    if fields is not None:
        (result.count,) = fields
    return result


def parse_parameters(frame: Frame) -> ParametersResult:
    """Parse the 16-byte system parameter block following the status byte."""
    status = parse_status(frame)
    fields = COMMANDS["query_parameters"].unpack(frame.payload)
    if fields is None:
        return ParametersResult(status=status)
    return ParametersResult(status=status, parameters=SensorParameters.from_fields(*fields))
