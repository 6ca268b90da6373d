"""Serial transport layer for CO2 sensor communication."""

import logging
from typing import Optional, Protocol

from co2_sensor_lib import protocol
from co2_sensor_lib.errors import DeviceOpenError, SerialIOError, SerialWriteError

logger = logging.getLogger(__name__)


class SerialLike(Protocol):
    """Protocol for serial port interface (allows test doubles)."""

    def write(self, data: bytes) -> int:
        """Write bytes to serial port."""
        ...

    def readline(self) -> bytes:
        """Read a line from serial port."""
        ...

    def flush(self) -> None:
        """Flush output buffer (force transmission)."""
        ...

    def reset_input_buffer(self) -> None:
        """Flush input buffer."""
        ...

    def close(self) -> None:
        """Close serial port."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        ...


class Transport:
    """Wrapper around pyserial with protocol-specific helpers.

    Handles command termination and line framing for the sensor's
    CRLF text protocol.
    """

    def __init__(self, serial_port: SerialLike) -> None:
        """Initialize transport with a serial port instance.

        Args:
            serial_port: Object implementing SerialLike protocol
                        (e.g., serial.Serial or FakeSerial for testing)
        """
        self._port = serial_port

    @classmethod
    def open(
        cls,
        port: str,
        baud: int = protocol.BAUD_RATE,
        timeout_s: Optional[float] = None,
    ) -> "Transport":
        """Open a real serial port at 8N1 (requires pyserial).

        Args:
            port: Serial port device name (e.g., "/dev/UD_CO2S")
            baud: Baud rate. Default 115200 matches the sensor.
            timeout_s: Read timeout in seconds. None blocks until a line arrives.

        Returns:
            Transport instance wrapping opened serial port

        Raises:
            DeviceOpenError: If port cannot be opened or configured
        """
        try:
            import serial  # type: ignore
        except ImportError as e:
            raise DeviceOpenError("pyserial not installed. Run: pip install pyserial") from e

        try:
            ser = serial.Serial(
                port=port,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=timeout_s,
                rtscts=False,
                dsrdtr=False,
                xonxoff=False,
            )
        except (serial.SerialException, ValueError, OSError) as e:
            raise DeviceOpenError(f"Failed to open {port} at {baud} baud: {e}") from e

        logger.info(f"Opened serial port {port} at {baud} baud, timeout={timeout_s}s")
        return cls(ser)

    def close(self) -> None:
        """Close the serial port."""
        if self._port.is_open:
            self._port.close()
            logger.info("Closed serial port")

    @property
    def is_open(self) -> bool:
        """Check if port is currently open."""
        return self._port.is_open

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to port (no automatic termination).

        Args:
            data: Raw bytes to send

        Raises:
            SerialWriteError: If port is closed or write fails
        """
        if not self._port.is_open:
            raise SerialWriteError("Serial port is not open")

        try:
            sent = self._port.write(data)
            self._port.flush()  # Force immediate transmission
            logger.debug(f"Sent {sent} bytes: {data!r}")
        except Exception as e:
            raise SerialWriteError(f"Failed to write to port: {e}") from e

    def write_cmd(self, text: str) -> None:
        """Write a text command with CRLF terminator.

        Args:
            text: Command string (e.g., "STP", "STA")

        Raises:
            SerialWriteError: If write fails
        """
        data = text.encode("ascii") + protocol.INPUT_TERMINATOR
        self.write_bytes(data)

    def read_line(self) -> bytes:
        """Read one raw line from the device, including its LF delimiter.

        Blocks until the delimiter arrives or the port timeout expires.

        Returns:
            Raw line bytes ending with LF

        Raises:
            SerialIOError: If port is closed, the read fails, nothing arrived
                before the timeout, or the delimiter was not found
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            line = self._port.readline()
        except Exception as e:
            raise SerialIOError(f"Failed to read line: {e}") from e

        if not line:
            raise SerialIOError("No data received before read timeout")

        if not line.endswith(protocol.LINE_DELIMITER):
            raise SerialIOError(f"Line delimiter not found, partial read: {line!r}")

        logger.debug(f"Received line: {line!r}")
        return line

    def flush_input(self) -> None:
        """Discard all pending input from device.

        Raises:
            SerialIOError: If port is closed or the buffer cannot be reset
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            self._port.reset_input_buffer()
            logger.debug("Flushed input buffer")
        except Exception as e:
            raise SerialIOError(f"Failed to flush input: {e}") from e
