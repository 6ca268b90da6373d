"""Serial-to-PostgreSQL ingestion service for the CO2 sensor."""

from ingest_service.config import IngestSettings, build_device_id, load_settings

__all__ = ["IngestSettings", "build_device_id", "load_settings"]
