"""
co2_sensor_lib - Serial ingestion library for streaming CO2/humidity/temperature sensors.

Supports the comma-separated "CO2:<int>,HUM:<float>,TMP:<float>" line protocol
with STP/STA stream control at 115200 baud.
"""

from co2_sensor_lib.controller import DeviceController
from co2_sensor_lib.errors import (
    CO2SensorError,
    ConfigError,
    DeviceOpenError,
    HostnameError,
    IngestAborted,
    PersistError,
    SerialIOError,
    SerialWriteError,
    StoreUnreachableError,
)
from co2_sensor_lib.ingest import IngestionLoop, IngestStats, PersistenceSink, StepOutcome
from co2_sensor_lib.models import (
    CaptureEvent,
    DecodeFailure,
    DecodeFailureKind,
    DeviceState,
    Reading,
)
from co2_sensor_lib.parsing import decode_line

__version__ = "0.1.0"

__all__ = [
    "DeviceController",
    "IngestionLoop",
    "IngestStats",
    "PersistenceSink",
    "StepOutcome",
    "decode_line",
    "Reading",
    "CaptureEvent",
    "DecodeFailure",
    "DecodeFailureKind",
    "DeviceState",
    "CO2SensorError",
    "ConfigError",
    "DeviceOpenError",
    "HostnameError",
    "IngestAborted",
    "PersistError",
    "SerialIOError",
    "SerialWriteError",
    "StoreUnreachableError",
]
