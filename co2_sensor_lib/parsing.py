"""Pure functions for decoding sensor output lines."""

import math
import re
from typing import Dict, Union

from co2_sensor_lib import protocol
from co2_sensor_lib.models import (
    CONTROL_RESPONSES,
    DecodeFailure,
    DecodeFailureKind,
    Reading,
)

RE_INTEGER = re.compile(r"[+-]?\d+", re.ASCII)
RE_FLOAT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)

_PARSERS = {
    protocol.TAG_CO2: (RE_INTEGER, int),
    protocol.TAG_HUMIDITY: (RE_FLOAT, float),
    protocol.TAG_TEMPERATURE: (RE_FLOAT, float),
}


def decode_line(raw: Union[bytes, str]) -> Union[Reading, DecodeFailure]:
    """Decode one line of sensor output.

    Expected data format: CO2:<int>,HUM:<float>,TMP:<float>[,<TAG>:<value>...]
    Example: "CO2:410,HUM:45.2,TMP:23.5\\r\\n"

    Control responses ("NG", "OK STA", "OK STP") are classified rather than
    parsed. Unknown tags are ignored. The line must start with the CO2 field so
    that a read that started mid-line is not mistaken for a measurement.

    Never raises: every input yields either a Reading or a DecodeFailure.

    Args:
        raw: Line as read from the device, with or without CRLF

    Returns:
        Reading on success, otherwise a DecodeFailure describing why
    """
    if isinstance(raw, bytes):
        line = raw.decode("ascii", errors="replace")
    else:
        line = raw
    line = line.rstrip("\r\n")

    control = CONTROL_RESPONSES.get(line)
    if control is not None:
        return DecodeFailure(control, line, f"control response {line!r}")

    if len(line) < protocol.TAG_PREFIX_LENGTH:
        return DecodeFailure(
            DecodeFailureKind.UNRECOGNIZED_FORMAT, line, "line too short for a data field"
        )

    fields = line.split(protocol.FIELD_SEPARATOR)
    if not fields[0].startswith(protocol.TAG_CO2 + protocol.TAG_SEPARATOR):
        return DecodeFailure(
            DecodeFailureKind.UNRECOGNIZED_FORMAT, line, "line does not start with CO2 field"
        )

    values: Dict[str, Union[int, float]] = {}
    for field in fields:
        if (
            len(field) < protocol.TAG_PREFIX_LENGTH
            or field[protocol.TAG_LENGTH] != protocol.TAG_SEPARATOR
        ):
            return DecodeFailure(
                DecodeFailureKind.MALFORMED_VALUE, line, f"malformed field {field!r}"
            )

        tag = field[: protocol.TAG_LENGTH]
        text = field[protocol.TAG_PREFIX_LENGTH :]

        parser = _PARSERS.get(tag)
        if parser is None:
            continue

        if tag in values:
            return DecodeFailure(
                DecodeFailureKind.MALFORMED_VALUE, line, f"duplicate {tag} field"
            )

        pattern, convert = parser
        if not pattern.fullmatch(text):
            return DecodeFailure(
                DecodeFailureKind.MALFORMED_VALUE, line, f"invalid {tag} value {text!r}"
            )

        value = convert(text)
        if isinstance(value, float) and not math.isfinite(value):
            return DecodeFailure(
                DecodeFailureKind.MALFORMED_VALUE, line, f"non-finite {tag} value {text!r}"
            )
        values[tag] = value

    missing = [tag for tag in protocol.REQUIRED_TAGS if tag not in values]
    if missing:
        return DecodeFailure(
            DecodeFailureKind.MISSING_FIELD, line, f"missing {', '.join(missing)}"
        )

    return Reading(
        co2_ppm=int(values[protocol.TAG_CO2]),
        humidity_pct=float(values[protocol.TAG_HUMIDITY]),
        temperature_c=float(values[protocol.TAG_TEMPERATURE]),
    )
