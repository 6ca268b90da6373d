"""Configuration for the ingestion service.

Values come from command-line flags, then environment variables, then
defaults. The merged result is validated by a pydantic model.
"""

import argparse
import os
import socket
from typing import Callable, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from co2_sensor_lib import protocol
from co2_sensor_lib.errors import ConfigError, HostnameError

# (flag dest, environment variable, default)
_SOURCES = (
    ("postgres_host", "POSTGRES_HOST", None),
    ("postgres_port", "POSTGRES_PORT", 5432),
    ("postgres_user", "POSTGRES_USER", None),
    ("postgres_password", "POSTGRES_PASSWORD", ""),
    ("postgres_db", "POSTGRES_DB", None),
    ("connect_timeout", "POSTGRES_CONNECT_TIMEOUT", 10),
    ("sensor_serial", "SENSOR_SERIAL", "demo"),
    ("serial_device", "SERIAL_DEVICE", protocol.DEFAULT_DEVICE_PATH),
    ("serial_timeout", "SERIAL_TIMEOUT", None),
    ("sink", "INGEST_SINK", "postgres"),
    ("export_dir", "INGEST_EXPORT_DIR", None),
    ("create_tables", "INGEST_CREATE_TABLES", False),
    ("log_level", "LOG_LEVEL", "INFO"),
)


class IngestSettings(BaseModel):
    """Validated service configuration."""

    postgres_host: Optional[str] = None
    postgres_port: int = 5432
    postgres_user: Optional[str] = None
    postgres_password: str = ""
    postgres_db: Optional[str] = None
    connect_timeout: Optional[int] = 10
    sensor_serial: str = "demo"
    serial_device: str = protocol.DEFAULT_DEVICE_PATH
    serial_timeout: Optional[float] = None
    sink: Literal["postgres", "memory"] = "postgres"
    export_dir: Optional[str] = None
    create_tables: bool = False
    log_level: str = "INFO"

    @field_validator("postgres_port")
    @classmethod
    def check_port(cls, value: int) -> int:
        if not (1 <= value <= 65535):
            raise ValueError(f"port must be 1-65535, got {value}")
        return value

    @field_validator("serial_timeout", "connect_timeout")
    @classmethod
    def check_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError(f"timeout must be positive, got {value}")
        return value

    @field_validator("sensor_serial", "serial_device")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @model_validator(mode="after")
    def check_postgres_target(self) -> "IngestSettings":
        if self.sink == "postgres":
            missing = [
                name
                for name in ("postgres_host", "postgres_user", "postgres_db")
                if not (getattr(self, name) or "").strip()
            ]
            if missing:
                raise ValueError(f"missing mandatory database settings: {', '.join(missing)}")
        return self

    def postgres_target(self) -> str:
        """Connection target for logs, without the password."""
        return f"{self.postgres_user}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"


def build_parser() -> argparse.ArgumentParser:
    """Command-line flags. Every default is None so unset flags fall through to env."""
    parser = argparse.ArgumentParser(
        prog="co2-ingest",
        description="Read a serial CO2 sensor and store readings in PostgreSQL",
    )
    parser.add_argument("--postgres", dest="postgres_host", help="PostgreSQL host [POSTGRES_HOST]")
    parser.add_argument("--postgres-port", type=int, help="PostgreSQL port [POSTGRES_PORT, 5432]")
    parser.add_argument("--postgres-user", help="PostgreSQL user [POSTGRES_USER]")
    parser.add_argument("--postgres-password", help="PostgreSQL password [POSTGRES_PASSWORD]")
    parser.add_argument("--postgres-db", help="PostgreSQL database [POSTGRES_DB]")
    parser.add_argument(
        "--connect-timeout", type=int, help="Database connect timeout in seconds [10]"
    )
    parser.add_argument(
        "--sensor-serial", help="Sensor label used in the device id [SENSOR_SERIAL, demo]"
    )
    parser.add_argument(
        "--serial-device",
        help=f"Serial device path [SERIAL_DEVICE, {protocol.DEFAULT_DEVICE_PATH}]",
    )
    parser.add_argument(
        "--serial-timeout", type=float, help="Serial read timeout in seconds [blocking]"
    )
    parser.add_argument(
        "--sink", choices=["postgres", "memory"], help="Where readings go [INGEST_SINK, postgres]"
    )
    parser.add_argument("--export-dir", help="CSV export directory for the memory sink")
    parser.add_argument(
        "--create-tables",
        action="store_const",
        const=True,
        help="Create the co2/humidity/temperature tables if missing",
    )
    parser.add_argument("--log-level", help="Logging level [LOG_LEVEL, INFO]")
    return parser


def load_settings(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> IngestSettings:
    """Merge flags, environment and defaults into validated settings.

    Args:
        argv: Command-line arguments (without program name). None uses sys.argv.
        environ: Environment mapping. None uses os.environ.

    Returns:
        Validated IngestSettings

    Raises:
        ConfigError: If a value is invalid or mandatory settings are missing
    """
    args = build_parser().parse_args(argv)
    env = os.environ if environ is None else environ

    values = {}
    for dest, env_name, default in _SOURCES:
        flag_value = getattr(args, dest)
        if flag_value is not None:
            values[dest] = flag_value
            continue
        env_value = env.get(env_name)
        if env_value is not None and env_value.strip():
            values[dest] = env_value.strip()
        else:
            values[dest] = default

    try:
        return IngestSettings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def build_device_id(
    sensor_label: str, hostname_fn: Callable[[], str] = socket.gethostname
) -> str:
    """Build the "<hostname>:<sensor label>" device identifier.

    Raises:
        HostnameError: If the host name cannot be determined
    """
    try:
        hostname = hostname_fn()
    except OSError as e:
        raise HostnameError(f"Failed to resolve host name: {e}") from e

    if not hostname:
        raise HostnameError("Host name is empty")

    return f"{hostname}:{sensor_label}"
