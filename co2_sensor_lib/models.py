"""Data models for the CO2 sensor ingestion library."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from co2_sensor_lib import protocol


class DeviceState(Enum):
    """Device controller connection states."""

    CLOSED = "closed"
    OPEN = "open"
    STREAMING = "streaming"


class DecodeFailureKind(Enum):
    """Why a raw line did not produce a Reading."""

    REJECTED = "rejected"
    START_ACK = "start_ack"
    STOP_ACK = "stop_ack"
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    MALFORMED_VALUE = "malformed_value"
    MISSING_FIELD = "missing_field"


CONTROL_SIGNALS = frozenset(
    {
        DecodeFailureKind.REJECTED,
        DecodeFailureKind.START_ACK,
        DecodeFailureKind.STOP_ACK,
    }
)

CONTROL_RESPONSES = {
    protocol.RESP_REJECTED: DecodeFailureKind.REJECTED,
    protocol.RESP_START_ACK: DecodeFailureKind.START_ACK,
    protocol.RESP_STOP_ACK: DecodeFailureKind.STOP_ACK,
}


@dataclass(frozen=True)
class Reading:
    """One CO2/humidity/temperature measurement.

    Attributes:
        co2_ppm: CO2 concentration in parts per million.
        humidity_pct: Relative humidity in percent.
        temperature_c: Temperature in degrees Celsius.
    """

    co2_ppm: int
    humidity_pct: float
    temperature_c: float


@dataclass(frozen=True)
class DecodeFailure:
    """Classified result for a line that is not a valid measurement.

    Attributes:
        kind: Failure classification.
        line: Line content with CRLF stripped.
        detail: Human-readable explanation for logs.
    """

    kind: DecodeFailureKind
    line: str
    detail: str = ""

    @property
    def is_control_signal(self) -> bool:
        """True for device acknowledgements and rejections (expected traffic)."""
        return self.kind in CONTROL_SIGNALS


@dataclass(frozen=True)
class CaptureEvent:
    """A Reading bound to the device that produced it and when it was read.

    Attributes:
        device_id: "<hostname>:<sensor label>" identifier.
        captured_at: UTC timestamp taken when the line read completed.
        reading: The decoded measurement.
    """

    device_id: str
    captured_at: datetime
    reading: Reading

    def __post_init__(self) -> None:
        """Validate capture timestamp."""
        if self.captured_at.tzinfo is None:
            raise ValueError("captured_at must be timezone-aware (UTC)")
