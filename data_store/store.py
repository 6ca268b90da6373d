"""In-memory DataFrame sink for dry runs and offline inspection.

Keeps one pandas DataFrame per table with the same layout as the PostgreSQL
tables (time, device_id, <value column>) and can export them to CSV.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from co2_sensor_lib.errors import PersistError, StoreUnreachableError
from co2_sensor_lib.models import CaptureEvent
from data_store.schemas import KEY_COLUMNS, TABLES, event_to_rows

logger = logging.getLogger(__name__)


def _empty_frame(table: str) -> pd.DataFrame:
    column = TABLES[table][0]
    return pd.DataFrame(columns=[*KEY_COLUMNS, column])


class MemorySink:
    """Persistence sink that accumulates capture events in DataFrames.

    Timestamps are stored as UTC ISO 8601 strings. Oldest rows are trimmed
    once a table exceeds max_rows.
    """

    def __init__(self, max_rows: int = 100000) -> None:
        """Initialize empty tables.

        Args:
            max_rows: Maximum rows to keep per table.
        """
        self._max_rows = max_rows
        self._frames: Dict[str, pd.DataFrame] = {table: _empty_frame(table) for table in TABLES}
        self._closed = False

    def ping(self) -> None:
        """Always reachable while open."""
        if self._closed:
            raise StoreUnreachableError("Memory sink is closed")

    def insert(self, event: CaptureEvent) -> None:
        """Append one capture event as three rows.

        Raises:
            PersistError: If the sink has been closed
        """
        if self._closed:
            raise PersistError("Memory sink is closed")

        for table, row in event_to_rows(event).items():
            row = dict(row, time=row["time"].isoformat())
            new_df = pd.DataFrame([row], columns=list(self._frames[table].columns))
            frame = self._frames[table]
            frame = new_df if frame.empty else pd.concat([frame, new_df], ignore_index=True)

            if len(frame) > self._max_rows:
                excess = len(frame) - self._max_rows
                frame = frame.iloc[excess:].reset_index(drop=True)
                logger.debug(f"Trimmed {excess} oldest rows from {table}")

            self._frames[table] = frame

    def get_dataframe(self, table: str) -> pd.DataFrame:
        """Get a copy of one table.

        Raises:
            KeyError: If table is not one of co2, humidity, temperature
        """
        return self._frames[table].copy()

    def get_stats(self) -> dict:
        """Summary of stored data.

        Returns:
            Dictionary with keys:
                - row_count: Number of events stored
                - start_time: ISO timestamp of first event (or None)
                - end_time: ISO timestamp of last event (or None)
                - duration_s: Time span of data in seconds (or 0)
                - co2_mean_ppm: Mean CO2 concentration (or None)
        """
        co2 = self._frames["co2"]
        if co2.empty:
            return {
                "row_count": 0,
                "start_time": None,
                "end_time": None,
                "duration_s": 0.0,
                "co2_mean_ppm": None,
            }

        timestamps = pd.to_datetime(co2["time"], format="ISO8601", utc=True)
        start = timestamps.iloc[0]
        end = timestamps.iloc[-1]

        return {
            "row_count": len(co2),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "duration_s": (end - start).total_seconds(),
            "co2_mean_ppm": float(co2["concentration"].astype(float).mean()),
        }

    def export_csv(self, directory: Optional[str] = None) -> Dict[str, str]:
        """Write each table to <directory>/<table>_<timestamp>.csv.

        Args:
            directory: Output directory, created if missing. Defaults to cwd.

        Returns:
            Mapping of table name to absolute path of the exported file
        """
        out_dir = Path(directory) if directory else Path.cwd()
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        paths = {}
        for table, frame in self._frames.items():
            path = out_dir / f"{table}_{stamp}.csv"
            frame.to_csv(path, index=False)
            paths[table] = str(path.resolve())
            logger.info(f"Exported {len(frame)} rows to CSV: {paths[table]}")
        return paths

    def close(self) -> None:
        self._closed = True
