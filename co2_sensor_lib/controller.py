"""Device controller owning the serial connection and start/stop handshake."""

import logging
import time
from typing import Optional

from co2_sensor_lib import protocol
from co2_sensor_lib.errors import DeviceOpenError, SerialIOError
from co2_sensor_lib.models import DeviceState
from co2_sensor_lib.transport import SerialLike, Transport

logger = logging.getLogger(__name__)


class DeviceController:
    """Controller for a single streaming CO2 sensor.

    Owns the serial connection for the lifetime of the process. Not
    thread-safe: one controller is driven by one ingestion loop.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settle_s: float = protocol.STOP_SETTLE_TIME,
    ) -> None:
        """Initialize controller.

        Args:
            transport: Optional pre-configured Transport instance.
                      If None, must call open() to create one.
            settle_s: Delay between the stop command and clearing the input
                      buffer during the handshake.
        """
        self._transport = transport
        self._settle_s = settle_s
        self._state = DeviceState.OPEN if transport is not None else DeviceState.CLOSED
        self._device_path: Optional[str] = None

    # ========================================================================
    # Connection Management
    # ========================================================================

    def open(
        self,
        port: Optional[str] = None,
        baud: int = protocol.BAUD_RATE,
        serial_port: Optional[SerialLike] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        """Open the serial device at 8N1.

        Args:
            port: Serial device path (e.g., "/dev/UD_CO2S"). Required if serial_port not given.
            baud: Baud rate. Default 115200.
            serial_port: Pre-configured serial port object (for testing). If provided,
                        port and baud are ignored.
            timeout_s: Read timeout in seconds, None to block indefinitely.

        Raises:
            DeviceOpenError: If the port cannot be opened or is already open
        """
        if self._state != DeviceState.CLOSED:
            raise DeviceOpenError(f"Already open (state: {self._state.value})")

        if serial_port is not None:
            self._transport = Transport(serial_port)
        elif port is not None:
            self._transport = Transport.open(port, baud, timeout_s=timeout_s)
            self._device_path = port
        else:
            raise ValueError("Must provide either 'port' or 'serial_port'")

        self._state = DeviceState.OPEN

    def close(self) -> None:
        """Close the serial port. Safe to call more than once."""
        if self._state == DeviceState.CLOSED:
            return

        if self._transport:
            self._transport.close()
            self._transport = None

        self._state = DeviceState.CLOSED
        logger.info("Device controller closed")

    # ========================================================================
    # Handshake
    # ========================================================================

    def handshake(self) -> None:
        """Stop the device, drain stale input, then start streaming.

        Sends STP, waits the settle interval, clears the input buffer and
        sends STA. Failures are logged and ignored: if the device did not
        start, the read loop simply sees no valid data.

        Raises:
            SerialIOError: If the controller has not been opened
        """
        transport = self._require_transport()

        logger.info("Starting handshake: stop, clear input, start")

        try:
            transport.write_cmd(protocol.CMD_STOP)
        except SerialIOError as e:
            logger.warning(f"Stop command failed during handshake: {e}")

        time.sleep(self._settle_s)

        try:
            transport.flush_input()
        except SerialIOError as e:
            logger.warning(f"Clearing input buffer failed during handshake: {e}")

        try:
            transport.write_cmd(protocol.CMD_START)
        except SerialIOError as e:
            logger.warning(f"Start command failed during handshake: {e}")

        self._state = DeviceState.STREAMING
        logger.info("Handshake sent, device streaming")

    # ========================================================================
    # Data Access
    # ========================================================================

    def read_line(self) -> bytes:
        """Block until one raw line (including LF) is read from the device.

        Returns:
            Raw line bytes

        Raises:
            SerialIOError: If the read fails or the controller is not open
        """
        return self._require_transport().read_line()

    @property
    def state(self) -> DeviceState:
        """Current connection state."""
        return self._state

    @property
    def device_path(self) -> Optional[str]:
        """Serial device path, if opened by path."""
        return self._device_path

    def is_open(self) -> bool:
        """Check if controller holds an open serial port."""
        return (
            self._transport is not None
            and self._transport.is_open
            and self._state != DeviceState.CLOSED
        )

    def _require_transport(self) -> Transport:
        """Return the transport or raise if not open."""
        if self._transport is None or self._state == DeviceState.CLOSED:
            raise SerialIOError("Device controller is not open")
        return self._transport
