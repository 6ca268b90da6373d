"""Table layout for capture events in the time-series store.

Each CaptureEvent is written as three rows, one per measured quantity, all
keyed by (time, device_id). The same layout backs the PostgreSQL tables and
the in-memory DataFrames.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from co2_sensor_lib.models import CaptureEvent

# Table name -> (value column, python type)
TABLES = {
    "co2": ("concentration", int),
    "humidity": ("humidity", float),
    "temperature": ("temperature", float),
}

# Column names shared by every table, in insert order
KEY_COLUMNS = ("time", "device_id")

INSERT_STATEMENTS = {
    table: (
        f"INSERT INTO {table} (time, device_id, {column}) "
        f"VALUES (%s, %s, %s)"
    )
    for table, (column, _) in TABLES.items()
}

_SQL_TYPES = {int: "INTEGER", float: "DOUBLE PRECISION"}

CREATE_TABLE_STATEMENTS = {
    table: (
        f"CREATE TABLE IF NOT EXISTS {table} ("
        f"time TIMESTAMPTZ NOT NULL, "
        f"device_id TEXT NOT NULL, "
        f"{column} {_SQL_TYPES[kind]} NOT NULL)"
    )
    for table, (column, kind) in TABLES.items()
}


def utc_timestamp(ts: datetime) -> datetime:
    """Normalize a timestamp to UTC (naive timestamps are assumed UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def event_to_rows(event: CaptureEvent) -> Dict[str, Dict[str, Any]]:
    """Split a CaptureEvent into one row per table.

    Args:
        event: Capture event produced by the ingestion loop

    Returns:
        Mapping of table name to row dict with "time", "device_id" and the
        table's value column
    """
    ts = utc_timestamp(event.captured_at)
    values = {
        "co2": event.reading.co2_ppm,
        "humidity": event.reading.humidity_pct,
        "temperature": event.reading.temperature_c,
    }

    rows = {}
    for table, (column, kind) in TABLES.items():
        rows[table] = {
            "time": ts,
            "device_id": event.device_id,
            column: kind(values[table]),
        }
    return rows
