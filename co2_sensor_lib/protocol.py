"""Wire protocol constants for the UD-CO2S style CO2/humidity/temperature sensor.

The device streams one CRLF-terminated text line per measurement once it has
been told to start, and answers control commands with short status lines.
"""

from typing import Final

# ============================================================================
# Line Termination
# ============================================================================

# Device expects CRLF after every command
INPUT_TERMINATOR: Final[bytes] = b"\r\n"

# Device terminates every output line with CRLF; reads stop at LF
OUTPUT_TERMINATOR: Final[bytes] = b"\r\n"
LINE_DELIMITER: Final[bytes] = b"\n"

# ============================================================================
# Commands (text + CRLF)
# ============================================================================

CMD_STOP: Final[str] = "STP"  # Stop streaming measurements
CMD_START: Final[str] = "STA"  # Start streaming measurements

# ============================================================================
# Control Responses
# ============================================================================

RESP_REJECTED: Final[str] = "NG"
RESP_START_ACK: Final[str] = "OK STA"
RESP_STOP_ACK: Final[str] = "OK STP"

# ============================================================================
# Data Line Format: CO2:<int>,HUM:<float>,TMP:<float>[,<TAG>:<value>...]
# ============================================================================

FIELD_SEPARATOR: Final[str] = ","
TAG_SEPARATOR: Final[str] = ":"
TAG_LENGTH: Final[int] = 3

# Tag plus separator, e.g. "CO2:"
TAG_PREFIX_LENGTH: Final[int] = TAG_LENGTH + len(TAG_SEPARATOR)

TAG_CO2: Final[str] = "CO2"
TAG_HUMIDITY: Final[str] = "HUM"
TAG_TEMPERATURE: Final[str] = "TMP"

REQUIRED_TAGS: Final[tuple[str, ...]] = (TAG_CO2, TAG_HUMIDITY, TAG_TEMPERATURE)

# ============================================================================
# Serial Settings
# ============================================================================

DEFAULT_DEVICE_PATH: Final[str] = "/dev/UD_CO2S"
BAUD_RATE: Final[int] = 115200

# ============================================================================
# Timing Constants (seconds)
# ============================================================================

# Time between STP and clearing the input buffer, lets in-flight lines drain
STOP_SETTLE_TIME: Final[float] = 0.1
