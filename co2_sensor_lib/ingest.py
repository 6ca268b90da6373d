"""Ingestion loop: read, decode, timestamp and persist sensor lines.

The loop is single-threaded and fully blocking. A slow store slows ingestion
down; nothing is queued. Failures are classified through an explicit policy
table (see co2_sensor_lib.errors.FAILURE_POLICY): transient ones are logged
and skipped, fatal ones raise out of the loop.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Mapping, Optional, Protocol

from co2_sensor_lib.controller import DeviceController
from co2_sensor_lib.errors import (
    FAILURE_POLICY,
    Action,
    CO2SensorError,
    FailureKind,
    IngestAborted,
    PersistError,
    SerialIOError,
    StoreUnreachableError,
    action_for,
    classify,
)
from co2_sensor_lib.models import CaptureEvent, DecodeFailure, DecodeFailureKind
from co2_sensor_lib.parsing import decode_line

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    """Store that accepts capture events (allows test doubles)."""

    def ping(self) -> None:
        """Check the backing store is reachable. Raises StoreUnreachableError."""
        ...

    def insert(self, event: CaptureEvent) -> None:
        """Write one event (three related rows). Raises PersistError."""
        ...

    def close(self) -> None:
        """Release the store connection."""
        ...


class StepOutcome(Enum):
    """Result of a single loop iteration."""

    PERSISTED = "persisted"
    READ_FAILED = "read_failed"
    CONTROL_SIGNAL = "control_signal"
    DISCARDED = "discarded"
    PERSIST_FAILED = "persist_failed"


@dataclass
class IngestStats:
    """Running counters for each loop outcome."""

    persisted: int = 0
    read_failed: int = 0
    control_signal: int = 0
    discarded: int = 0
    persist_failed: int = 0

    @property
    def iterations(self) -> int:
        return (
            self.persisted
            + self.read_failed
            + self.control_signal
            + self.discarded
            + self.persist_failed
        )

    def record(self, outcome: StepOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionLoop:
    """Drives DeviceController output through the decoder into a sink.

    Dependencies are passed in explicitly so that tests can substitute a
    FakeSerial-backed controller and an in-memory sink.
    """

    def __init__(
        self,
        controller: DeviceController,
        sink: PersistenceSink,
        device_id: str,
        clock: Callable[[], datetime] = utc_now,
        policy: Mapping[FailureKind, Action] = FAILURE_POLICY,
    ) -> None:
        """Initialize the loop.

        Args:
            controller: Opened device controller
            sink: Persistence sink receiving one call per decoded line
            device_id: "<hostname>:<sensor label>" identifier
            clock: Returns the current UTC time (injectable for tests)
            policy: Failure kind to action table
        """
        self._controller = controller
        self._sink = sink
        self._device_id = device_id
        self._clock = clock
        self._policy = policy
        self._last_captured_at: Optional[datetime] = None
        self.stats = IngestStats()

    @property
    def device_id(self) -> str:
        return self._device_id

    def prepare(self) -> None:
        """Check the store is reachable, then run the device handshake.

        Raises:
            StoreUnreachableError: If the sink's backing store cannot be reached
        """
        try:
            self._sink.ping()
        except StoreUnreachableError:
            raise
        except PersistError as e:
            raise StoreUnreachableError(f"Store reachability check failed: {e}") from e
        logger.info("Store reachable")

        self._controller.handshake()

    def run(self, max_iterations: Optional[int] = None) -> IngestStats:
        """Prepare, then iterate until a fatal failure.

        Args:
            max_iterations: Stop after this many iterations. None runs forever.

        Returns:
            Loop statistics (only reached when max_iterations is given)

        Raises:
            CO2SensorError: On any failure the policy classifies as fatal
        """
        self.prepare()
        logger.info(f"Ingestion loop started for device {self._device_id}")

        count = 0
        while max_iterations is None or count < max_iterations:
            self.step()
            count += 1

        return self.stats

    def step(self) -> StepOutcome:
        """Run one read, decode, persist iteration.

        Returns:
            What happened to the line read in this iteration

        Raises:
            CO2SensorError: If the failure encountered is classified as fatal
        """
        outcome = self._step()
        self.stats.record(outcome)
        return outcome

    def _step(self) -> StepOutcome:
        try:
            raw = self._controller.read_line()
        except SerialIOError as e:
            captured_at = self._capture_time()
            self._check(e)
            logger.warning(f"{captured_at.isoformat()}: failed to read line: {e}")
            return StepOutcome.READ_FAILED

        captured_at = self._capture_time()
        result = decode_line(raw)

        if isinstance(result, DecodeFailure):
            return self._handle_decode_failure(result, captured_at)

        event = CaptureEvent(
            device_id=self._device_id, captured_at=captured_at, reading=result
        )

        try:
            self._sink.insert(event)
        except PersistError as e:
            self._check(e)
            logger.error(
                f"{captured_at.isoformat()}: failed to persist {result} "
                f"for {self._device_id}: {e}"
            )
            return StepOutcome.PERSIST_FAILED

        logger.debug(f"{captured_at.isoformat()}: {result}")
        return StepOutcome.PERSISTED

    def _handle_decode_failure(
        self, failure: DecodeFailure, captured_at: datetime
    ) -> StepOutcome:
        stamp = captured_at.isoformat()

        if failure.is_control_signal:
            self._check_kind(FailureKind.CONTROL_SIGNAL, failure.detail)
            if failure.kind == DecodeFailureKind.REJECTED:
                logger.warning(f"{stamp}: device rejected command ({failure.line!r})")
            else:
                logger.info(f"{stamp}: device acknowledged: {failure.line!r}")
            return StepOutcome.CONTROL_SIGNAL

        self._check_kind(FailureKind.DECODE, failure.detail)
        logger.warning(
            f"{stamp}: discarded line ({failure.kind.value}: {failure.detail}): "
            f"{failure.line!r}"
        )
        return StepOutcome.DISCARDED

    def _capture_time(self) -> datetime:
        """Current UTC time, never earlier than the previous capture."""
        now = self._clock()
        if self._last_captured_at is not None and now < self._last_captured_at:
            logger.debug(
                f"Clock went backwards ({now.isoformat()} < "
                f"{self._last_captured_at.isoformat()}), clamping"
            )
            now = self._last_captured_at
        self._last_captured_at = now
        return now

    def _check(self, error: CO2SensorError) -> None:
        """Re-raise an error the policy classifies as fatal."""
        if classify(error, self._policy) is Action.TERMINATE:
            logger.critical(f"Fatal {error.kind.value} failure: {error}")
            raise error

    def _check_kind(self, kind: FailureKind, detail: str) -> None:
        if action_for(kind, self._policy) is Action.TERMINATE:
            logger.critical(f"Fatal {kind.value} failure: {detail}")
            raise IngestAborted(kind, detail)
