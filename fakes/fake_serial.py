"""Fake serial port that simulates the CO2 sensor's streaming protocol.

The simulator answers STP/STA commands with OK acknowledgements and, once
started, plays back a scripted sequence of output lines. Script entries may
be exceptions, which are raised from readline() to simulate I/O failures.
"""

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

ScriptItem = Union[str, bytes, BaseException]


def _to_output(item: ScriptItem) -> Union[bytes, BaseException]:
    """Strings get CRLF appended, bytes are sent verbatim."""
    if isinstance(item, str):
        return item.encode("ascii") + b"\r\n"
    return item


class FakeSerial:
    """Deterministic simulator of the sensor firmware.

    Implements the wire protocol:
    - CRLF-terminated commands STP (stop) and STA (start)
    - "OK STP" / "OK STA" acknowledgements, "NG" for unknown commands
    - Scripted data lines released after STA
    - Stale lines already waiting in the input buffer when the port opens
    """

    def __init__(
        self,
        lines: Optional[Iterable[ScriptItem]] = None,
        stale_lines: Optional[Iterable[ScriptItem]] = None,
        fail_writes: bool = False,
    ) -> None:
        """Initialize fake sensor.

        Args:
            lines: Output played back after the start command
            stale_lines: Output pending before any command (device was already streaming)
            fail_writes: If True, every write raises (simulates a broken TX line)
        """
        self._script: List[ScriptItem] = list(lines or [])
        self.fail_writes = fail_writes

        # Runtime state
        self.streaming = bool(stale_lines)
        self.commands: List[str] = []
        self.written: List[bytes] = []
        self.input_resets = 0

        # Output queue for lines to send to "host"
        self._output: Deque[Union[bytes, BaseException]] = deque(
            _to_output(item) for item in (stale_lines or [])
        )

        # Input buffer for commands from "host"
        self._input_buffer = bytearray()

        # Port state
        self.is_open = True
        self.timeout: Optional[float] = None

    def close(self) -> None:
        """Close the fake serial port."""
        self.is_open = False
        logger.debug("FakeSerial closed")

    def write(self, data: bytes) -> int:
        """Write data to device (from host perspective).

        Args:
            data: Bytes to write

        Returns:
            Number of bytes written
        """
        if not self.is_open:
            raise RuntimeError("Port is closed")
        if self.fail_writes:
            raise OSError("Write failed (simulated)")

        self.written.append(data)
        self._input_buffer.extend(data)
        logger.debug(f"FakeSerial received: {data!r}")

        self._process_input()
        return len(data)

    def readline(self) -> bytes:
        """Read one line from device output.

        Returns:
            Next scripted line, or b"" when nothing is pending (timeout)

        Raises:
            Whatever exception was scripted at this position
        """
        if not self.is_open:
            raise RuntimeError("Port is closed")

        if not self._output:
            return b""

        item = self._output.popleft()
        if isinstance(item, BaseException):
            raise item

        logger.debug(f"FakeSerial sending line: {item!r}")
        return item

    def flush(self) -> None:
        """Flush output buffer (no-op, writes are immediate)."""
        pass

    def reset_input_buffer(self) -> None:
        """Discard everything the device sent that the host has not read."""
        self._output.clear()
        self.input_resets += 1
        logger.debug("FakeSerial input buffer flushed")

    def feed(self, *items: ScriptItem) -> None:
        """Queue more device output immediately (device already streaming)."""
        self._output.extend(_to_output(item) for item in items)

    @property
    def pending(self) -> int:
        """Number of output items not yet read."""
        return len(self._output)

    # ========================================================================
    # Internal: Input Processing
    # ========================================================================

    def _process_input(self) -> None:
        """Handle complete CRLF-terminated commands."""
        while b"\r\n" in self._input_buffer:
            idx = self._input_buffer.index(b"\r\n")
            cmd = bytes(self._input_buffer[:idx]).decode("ascii", errors="ignore")
            self._input_buffer = self._input_buffer[idx + 2 :]
            self.commands.append(cmd)

            if cmd == "STP":
                self.streaming = False
                self._send_line("OK STP")
            elif cmd == "STA":
                self.streaming = True
                self._send_line("OK STA")
                self._output.extend(_to_output(item) for item in self._script)
                self._script = []
            else:
                self._send_line("NG")

    def _send_line(self, text: str) -> None:
        self._output.append(text.encode("ascii") + b"\r\n")
