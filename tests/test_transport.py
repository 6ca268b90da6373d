"""Tests for the serial transport layer."""

import pytest

from co2_sensor_lib.errors import DeviceOpenError, SerialIOError, SerialWriteError
from co2_sensor_lib.transport import Transport
from fakes.fake_serial import FakeSerial


def test_write_cmd_appends_crlf() -> None:
    """Test commands are sent with CRLF terminator."""
    fake_serial = FakeSerial()
    transport = Transport(fake_serial)

    transport.write_cmd("STP")

    assert fake_serial.written == [b"STP\r\n"]
    assert fake_serial.commands == ["STP"]


def test_read_line_returns_raw_bytes_with_delimiter() -> None:
    """Test read_line keeps the CRLF terminator."""
    fake_serial = FakeSerial(stale_lines=["CO2:400,HUM:40.0,TMP:20.0"])
    transport = Transport(fake_serial)

    assert transport.read_line() == b"CO2:400,HUM:40.0,TMP:20.0\r\n"


def test_read_line_timeout_raises() -> None:
    """Test an empty read (timeout) is reported as an I/O error."""
    transport = Transport(FakeSerial())

    with pytest.raises(SerialIOError, match="timeout"):
        transport.read_line()


def test_read_line_partial_line_raises() -> None:
    """Test a line without LF delimiter is reported as an I/O error."""
    fake_serial = FakeSerial(stale_lines=[b"CO2:400,HUM:4"])
    transport = Transport(fake_serial)

    with pytest.raises(SerialIOError, match="delimiter"):
        transport.read_line()


def test_read_line_wraps_port_errors() -> None:
    """Test exceptions from the port are wrapped with context."""
    fake_serial = FakeSerial(stale_lines=[OSError("device disconnected")])
    transport = Transport(fake_serial)

    with pytest.raises(SerialIOError) as exc_info:
        transport.read_line()

    assert isinstance(exc_info.value.__cause__, OSError)


def test_read_line_on_closed_port() -> None:
    """Test reading a closed port raises."""
    fake_serial = FakeSerial()
    transport = Transport(fake_serial)
    transport.close()

    assert not transport.is_open
    with pytest.raises(SerialIOError):
        transport.read_line()


def test_write_failure_raises_write_error() -> None:
    """Test write failures surface as SerialWriteError."""
    transport = Transport(FakeSerial(fail_writes=True))

    with pytest.raises(SerialWriteError):
        transport.write_cmd("STA")


def test_flush_input_discards_pending_lines() -> None:
    """Test flush_input clears unread device output."""
    fake_serial = FakeSerial(stale_lines=["CO2:1,HUM:1,TMP:1", "CO2:2,HUM:2,TMP:2"])
    transport = Transport(fake_serial)

    transport.flush_input()

    assert fake_serial.pending == 0
    assert fake_serial.input_resets == 1


def test_open_missing_device_raises_device_open_error() -> None:
    """Test opening a nonexistent device path fails with DeviceOpenError."""
    pytest.importorskip("serial")

    with pytest.raises(DeviceOpenError):
        Transport.open("/dev/does-not-exist-co2")


def test_open_configures_8n1(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the port is opened at 115200 8N1 with the given timeout."""
    serial = pytest.importorskip("serial")
    captured = {}

    def fake_serial_ctor(**kwargs):
        captured.update(kwargs)
        return FakeSerial()

    monkeypatch.setattr(serial, "Serial", fake_serial_ctor)

    transport = Transport.open("/dev/UD_CO2S", timeout_s=2.0)

    assert transport.is_open
    assert captured["port"] == "/dev/UD_CO2S"
    assert captured["baudrate"] == 115200
    assert captured["bytesize"] == serial.EIGHTBITS
    assert captured["parity"] == serial.PARITY_NONE
    assert captured["stopbits"] == serial.STOPBITS_ONE
    assert captured["timeout"] == 2.0
