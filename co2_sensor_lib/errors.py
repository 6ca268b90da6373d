"""Custom exceptions and the fatal/continue policy for the ingestion pipeline."""

from enum import Enum
from typing import Mapping


class FailureKind(Enum):
    """Every kind of failure the pipeline knows how to classify."""

    CONFIG = "config"
    HOSTNAME = "hostname"
    DEVICE_OPEN = "device_open"
    STORE_UNREACHABLE = "store_unreachable"
    SERIAL_READ = "serial_read"
    SERIAL_WRITE = "serial_write"
    CONTROL_SIGNAL = "control_signal"
    DECODE = "decode"
    PERSIST = "persist"


class Action(Enum):
    """What the ingestion loop does after a failure."""

    CONTINUE = "continue"
    TERMINATE = "terminate"


FAILURE_POLICY: Mapping[FailureKind, Action] = {
    FailureKind.CONFIG: Action.TERMINATE,
    FailureKind.HOSTNAME: Action.TERMINATE,
    FailureKind.DEVICE_OPEN: Action.TERMINATE,
    FailureKind.STORE_UNREACHABLE: Action.TERMINATE,
    FailureKind.SERIAL_READ: Action.CONTINUE,
    FailureKind.SERIAL_WRITE: Action.CONTINUE,
    FailureKind.CONTROL_SIGNAL: Action.CONTINUE,
    FailureKind.DECODE: Action.CONTINUE,
    FailureKind.PERSIST: Action.CONTINUE,
}


def action_for(
    kind: FailureKind, policy: Mapping[FailureKind, Action] = FAILURE_POLICY
) -> Action:
    """Look up the action for a failure kind.

    Kinds missing from a custom policy terminate.
    """
    return policy.get(kind, Action.TERMINATE)


class CO2SensorError(Exception):
    """Base exception for all CO2 sensor library errors."""

    kind: FailureKind = FailureKind.CONFIG


class ConfigError(CO2SensorError):
    """Raised when mandatory configuration is missing or invalid."""

    kind = FailureKind.CONFIG


class HostnameError(CO2SensorError):
    """Raised when the host name used in the device identifier cannot be resolved."""

    kind = FailureKind.HOSTNAME


class SerialIOError(CO2SensorError):
    """Raised when serial communication fails (port closed, timeout, partial line)."""

    kind = FailureKind.SERIAL_READ


class DeviceOpenError(SerialIOError):
    """Raised when the serial device cannot be opened or configured."""

    kind = FailureKind.DEVICE_OPEN


class SerialWriteError(SerialIOError):
    """Raised when a command cannot be written to the device."""

    kind = FailureKind.SERIAL_WRITE


class PersistError(CO2SensorError):
    """Raised when a capture event cannot be written to the store."""

    kind = FailureKind.PERSIST


class StoreUnreachableError(PersistError):
    """Raised when the backing store cannot be reached."""

    kind = FailureKind.STORE_UNREACHABLE


class IngestAborted(CO2SensorError):
    """Raised by the ingestion loop when the policy says a failure is fatal."""

    def __init__(self, kind: FailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def classify(
    error: CO2SensorError, policy: Mapping[FailureKind, Action] = FAILURE_POLICY
) -> Action:
    """Map a raised library error to its policy action."""
    return action_for(error.kind, policy)
