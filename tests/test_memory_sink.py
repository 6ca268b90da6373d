"""Tests for the in-memory DataFrame sink."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
import pytest

from co2_sensor_lib.errors import PersistError, StoreUnreachableError
from co2_sensor_lib.models import CaptureEvent, Reading
from data_store import TABLES, MemorySink, event_to_rows

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_event(i: int) -> CaptureEvent:
    return CaptureEvent(
        device_id="pi4:demo",
        captured_at=START + timedelta(seconds=i),
        reading=Reading(co2_ppm=400 + i, humidity_pct=40.0 + i, temperature_c=20.0 + i),
    )


def test_event_to_rows_layout() -> None:
    """Test each table gets time, device_id and its value column."""
    rows = event_to_rows(make_event(0))

    assert set(rows) == set(TABLES)
    assert rows["co2"] == {"time": START, "device_id": "pi4:demo", "concentration": 400}
    assert rows["humidity"]["humidity"] == 40.0
    assert rows["temperature"]["temperature"] == 20.0


def test_event_to_rows_normalizes_to_utc() -> None:
    """Test non-UTC capture times are converted to UTC."""
    local = START.astimezone(timezone(timedelta(hours=9)))
    event = CaptureEvent("pi4:demo", local, Reading(400, 40.0, 20.0))

    assert event_to_rows(event)["co2"]["time"] == START
    assert event_to_rows(event)["co2"]["time"].utcoffset() == timedelta(0)


def test_capture_event_requires_timezone() -> None:
    """Test naive timestamps are refused at event construction."""
    with pytest.raises(ValueError):
        CaptureEvent("pi4:demo", datetime(2024, 1, 1), Reading(400, 40.0, 20.0))


def test_insert_appends_to_all_tables() -> None:
    """Test one insert adds one row per table."""
    sink = MemorySink()

    sink.insert(make_event(0))
    sink.insert(make_event(1))

    co2 = sink.get_dataframe("co2")
    assert list(co2.columns) == ["time", "device_id", "concentration"]
    assert co2["concentration"].tolist() == [400, 401]
    assert co2["time"].iloc[0] == START.isoformat()
    assert len(sink.get_dataframe("humidity")) == 2
    assert sink.get_dataframe("temperature")["temperature"].tolist() == [20.0, 21.0]


def test_max_rows_trims_oldest() -> None:
    """Test tables keep only the newest max_rows rows."""
    sink = MemorySink(max_rows=3)

    for i in range(5):
        sink.insert(make_event(i))

    assert sink.get_dataframe("co2")["concentration"].tolist() == [402, 403, 404]


def test_stats() -> None:
    """Test summary statistics over stored events."""
    sink = MemorySink()
    assert sink.get_stats()["row_count"] == 0

    for i in range(3):
        sink.insert(make_event(i))

    stats = sink.get_stats()
    assert stats["row_count"] == 3
    assert stats["duration_s"] == 2.0
    assert stats["co2_mean_ppm"] == pytest.approx(401.0)
    assert pd.Timestamp(stats["start_time"]) == pd.Timestamp(START)


def test_export_csv(tmp_path: Path) -> None:
    """Test each table is exported to its own CSV file."""
    sink = MemorySink()
    sink.insert(make_event(0))

    paths = sink.export_csv(str(tmp_path / "out"))

    assert set(paths) == set(TABLES)
    df = pd.read_csv(paths["co2"])
    assert df["concentration"].tolist() == [400]
    assert df["device_id"].tolist() == ["pi4:demo"]


def test_closed_sink_refuses_work() -> None:
    """Test closed sink fails ping and insert."""
    sink = MemorySink()
    sink.close()

    with pytest.raises(StoreUnreachableError):
        sink.ping()
    with pytest.raises(PersistError):
        sink.insert(make_event(0))
