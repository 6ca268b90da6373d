"""Entry point: wire configuration, device, sink and ingestion loop together.

Start-up failures (bad configuration, host name, serial device, unreachable
store) are fatal and exit non-zero so that an external supervisor can restart
the process. Once running, the loop only stops on a fatal failure or a signal.
"""

import logging
import sys
from typing import Optional, Sequence

from co2_sensor_lib import DeviceController, IngestionLoop
from co2_sensor_lib.errors import CO2SensorError, ConfigError, PersistError
from co2_sensor_lib.transport import SerialLike
from data_store import MemorySink, PostgresSink
from ingest_service.config import IngestSettings, build_device_id, load_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def build_sink(settings: IngestSettings):
    """Create the configured persistence sink.

    Raises:
        StoreUnreachableError: If the PostgreSQL connection cannot be opened
        PersistError: If table creation was requested and failed
    """
    if settings.sink == "memory":
        logger.info("Using in-memory sink (dry run)")
        return MemorySink()

    assert settings.postgres_host and settings.postgres_user and settings.postgres_db
    sink = PostgresSink.connect(
        host=settings.postgres_host,
        port=settings.postgres_port,
        user=settings.postgres_user,
        password=settings.postgres_password,
        dbname=settings.postgres_db,
        connect_timeout=settings.connect_timeout,
    )
    if settings.create_tables:
        try:
            sink.create_tables()
        except PersistError:
            sink.close()
            raise
    return sink


def run(
    settings: IngestSettings,
    serial_port: Optional[SerialLike] = None,
    sink=None,
    max_iterations: Optional[int] = None,
) -> IngestionLoop:
    """Open the device and sink, then run the ingestion loop.

    Args:
        settings: Validated configuration
        serial_port: Pre-built serial port (testing). None opens settings.serial_device.
        sink: Pre-built persistence sink (testing). None builds one from settings.
        max_iterations: Stop after this many loop iterations. None runs forever.

    Returns:
        The loop, after max_iterations (never returns otherwise)

    Raises:
        CO2SensorError: On any fatal failure
    """
    device_id = build_device_id(settings.sensor_serial)
    logger.info(f"Device id: {device_id}")

    controller = DeviceController()
    if sink is None:
        sink = build_sink(settings)

    try:
        if serial_port is not None:
            controller.open(serial_port=serial_port)
        else:
            controller.open(port=settings.serial_device, timeout_s=settings.serial_timeout)

        loop = IngestionLoop(controller, sink, device_id)
        try:
            loop.run(max_iterations=max_iterations)
        finally:
            stats = loop.stats
            logger.info(
                f"Ingestion summary: {stats.iterations} lines, {stats.persisted} persisted, "
                f"{stats.discarded} discarded, {stats.control_signal} control, "
                f"{stats.read_failed} read errors, {stats.persist_failed} persist errors"
            )
        return loop
    finally:
        controller.close()
        if isinstance(sink, MemorySink) and settings.export_dir:
            sink.export_csv(settings.export_dir)
        sink.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point. Returns the process exit code."""
    try:
        settings = load_settings(argv)
    except ConfigError as e:
        configure_logging()
        logger.critical(str(e))
        return EXIT_CONFIG

    configure_logging(settings.log_level)
    logger.info(f"Sink: {settings.sink}, serial device: {settings.serial_device}")
    if settings.sink == "postgres":
        logger.info(f"Postgres: {settings.postgres_target()}")

    try:
        run(settings)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return EXIT_OK
    except CO2SensorError as e:
        logger.critical(f"Fatal error ({e.kind.value}): {e}")
        return EXIT_FATAL

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
