"""PostgreSQL persistence sink (psycopg2).

Each capture event is written as three rows (co2, humidity, temperature) in a
single transaction. A failed insert rolls the transaction back so that a
partially written event never becomes visible; the event is not retried.
"""

import logging
from typing import Any, Optional

import psycopg2

from co2_sensor_lib.errors import PersistError, StoreUnreachableError
from co2_sensor_lib.models import CaptureEvent
from data_store.schemas import CREATE_TABLE_STATEMENTS, INSERT_STATEMENTS, TABLES, event_to_rows

logger = logging.getLogger(__name__)


class PostgresSink:
    """Persistence sink writing capture events to PostgreSQL tables.

    Owns one connection for the process lifetime. Not thread-safe.
    """

    def __init__(self, connection: Any) -> None:
        """Wrap an open DB-API connection (psycopg2 connection or test double)."""
        self._conn = connection

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        user: str,
        password: str,
        dbname: str,
        connect_timeout: Optional[int] = 10,
    ) -> "PostgresSink":
        """Open a PostgreSQL connection.

        Args:
            host: Database host
            port: Database port
            user: Database user
            password: Database password (may be empty)
            dbname: Database name
            connect_timeout: Seconds to wait for the server, None for libpq default

        Returns:
            PostgresSink wrapping the new connection

        Raises:
            StoreUnreachableError: If the connection cannot be established
        """
        target = f"{user}@{host}:{port}/{dbname}"
        logger.info(f"Opening postgres: {target}")

        kwargs = dict(host=host, port=port, user=user, password=password, dbname=dbname)
        if connect_timeout is not None:
            kwargs["connect_timeout"] = connect_timeout

        try:
            conn = psycopg2.connect(**kwargs)
        except psycopg2.Error as e:
            raise StoreUnreachableError(f"Failed to connect to database {target}: {e}") from e

        return cls(conn)

    def ping(self) -> None:
        """Run a trivial query to prove the store is reachable.

        Raises:
            StoreUnreachableError: If the query fails
        """
        try:
            with self._conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            self._conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise StoreUnreachableError(f"Failed to ping database: {e}") from e

    def create_tables(self) -> None:
        """Create the co2/humidity/temperature tables if they do not exist.

        Raises:
            PersistError: If any statement fails
        """
        try:
            with self._conn.cursor() as cursor:
                for table, statement in CREATE_TABLE_STATEMENTS.items():
                    cursor.execute(statement)
                    logger.debug(f"Ensured table {table}")
            self._conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise PersistError(f"Failed to create tables: {e}") from e

        logger.info(f"Tables ready: {', '.join(CREATE_TABLE_STATEMENTS)}")

    def insert(self, event: CaptureEvent) -> None:
        """Insert one capture event as three rows in one transaction.

        Args:
            event: Capture event from the ingestion loop

        Raises:
            PersistError: If any of the three inserts or the commit fails
        """
        rows = event_to_rows(event)
        current = None

        try:
            with self._conn.cursor() as cursor:
                for table, row in rows.items():
                    current = table
                    column = TABLES[table][0]
                    cursor.execute(
                        INSERT_STATEMENTS[table],
                        (row["time"], row["device_id"], row[column]),
                    )
            current = "commit"
            self._conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise PersistError(
                f"Insert failed at {current} for {event.device_id} "
                f"@ {event.captured_at.isoformat()}: {e}"
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        if not self._conn.closed:
            self._conn.close()
            logger.info("Closed database connection")

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")
