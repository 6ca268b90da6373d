"""Tests for the service entry point wiring."""

from pathlib import Path

import pytest

from co2_sensor_lib.errors import PersistError, StoreUnreachableError
from data_store import MemorySink
from fakes.fake_serial import FakeSerial
from ingest_service import main as main_module
from ingest_service.config import load_settings

DB_ENV_VARS = ("POSTGRES_HOST", "POSTGRES_USER", "POSTGRES_DB", "INGEST_SINK")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in DB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_run_memory_sink_end_to_end(tmp_path: Path) -> None:
    """Test handshake, decoding and persistence through the real wiring."""
    settings = load_settings(
        ["--sink", "memory", "--export-dir", str(tmp_path), "--sensor-serial", "lab1"],
        environ={},
    )
    fake_serial = FakeSerial(
        lines=["CO2:410,HUM:45.2,TMP:23.5", "NG", "CO2:411,HUM:45.3,TMP:23.6"]
    )
    sink = MemorySink()

    loop = main_module.run(settings, serial_port=fake_serial, sink=sink, max_iterations=4)

    assert loop.device_id.endswith(":lab1")
    assert loop.stats.persisted == 2
    assert fake_serial.commands == ["STP", "STA"]
    assert not fake_serial.is_open
    assert sorted(p.name.split("_")[0] for p in tmp_path.glob("*.csv")) == [
        "co2",
        "humidity",
        "temperature",
    ]


def test_run_store_unreachable_closes_device() -> None:
    """Test a failed reachability check is fatal and releases the serial port."""

    class UnreachableSink(MemorySink):
        def ping(self) -> None:
            raise StoreUnreachableError("connection refused")

    settings = load_settings(["--sink", "memory"], environ={})
    fake_serial = FakeSerial()

    with pytest.raises(StoreUnreachableError):
        main_module.run(settings, serial_port=fake_serial, sink=UnreachableSink())

    assert not fake_serial.is_open
    assert fake_serial.commands == []


def test_main_missing_config_exits_2(clean_env: None) -> None:
    """Test missing database settings stop the process before any I/O."""
    assert main_module.main([]) == main_module.EXIT_CONFIG


def test_main_device_open_failure_exits_1(clean_env: None) -> None:
    """Test an unopenable serial device is fatal."""
    pytest.importorskip("serial")

    code = main_module.main(["--sink", "memory", "--serial-device", "/dev/does-not-exist-co2"])

    assert code == main_module.EXIT_FATAL


def test_main_interrupt_exits_cleanly(
    clean_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test Ctrl+C is a normal shutdown."""

    def interrupted(settings):
        raise KeyboardInterrupt

    monkeypatch.setattr(main_module, "run", interrupted)

    assert main_module.main(["--sink", "memory"]) == main_module.EXIT_OK


def test_build_sink_memory() -> None:
    """Test the memory sink needs no database connection."""
    settings = load_settings(["--sink", "memory"], environ={})

    assert isinstance(main_module.build_sink(settings), MemorySink)


def test_build_sink_closes_connection_when_table_creation_fails(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a failed CREATE TABLE does not leak the database connection."""

    class FailingTablesSink:
        closed = False

        def create_tables(self) -> None:
            raise PersistError("permission denied for schema public")

        def close(self) -> None:
            self.closed = True

    sink = FailingTablesSink()
    monkeypatch.setattr(main_module.PostgresSink, "connect", lambda **kwargs: sink)
    settings = load_settings(
        [
            "--postgres",
            "db.local",
            "--postgres-user",
            "sensor",
            "--postgres-db",
            "env",
            "--create-tables",
        ],
        environ={},
    )

    with pytest.raises(PersistError):
        main_module.build_sink(settings)

    assert sink.closed
