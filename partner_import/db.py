"""Consumer store helpers: connection pool, change-entry upserts, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from partner_import.config import DatabaseConfig

logger = logging.getLogger("partner_import.db")

ENTRY_TABLE = "connector_space_entries"
ENTRY_COLUMNS = (
    "connector", "object_type", "dn", "modification_type",
    "attributes", "run_id",
)
# A dn is unique per connector and object type
ENTRY_KEY = ("connector", "object_type", "dn")
ENTRY_UPDATE = ("modification_type", "attributes", "run_id")

_ENTRY_UPSERT_SQL = (
    f"INSERT INTO {ENTRY_TABLE} ({', '.join(ENTRY_COLUMNS)}) VALUES %s "
    f"ON CONFLICT ({', '.join(ENTRY_KEY)}) DO UPDATE SET "
    + ", ".join(f"{c} = EXCLUDED.{c}" for c in ENTRY_UPDATE)
    + ", updated_at = NOW(), last_synced_at = NOW()"
)


class Database:
    """ThreadedConnectionPool plus the connector-space and import_runs queries."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Cursor whose work is committed on exit, rolled back on error."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # ------------------------------------------------------------------
    # Connector space
    # ------------------------------------------------------------------

    def upsert_entries(self, cur, rows: Sequence[tuple]) -> int:
        """Insert or replace change entries keyed by (connector, object_type, dn).

        Each row carries the values of ENTRY_COLUMNS in order. Returns the
        number of rows written.
        """
        if not rows:
            return 0
        psycopg2.extras.execute_values(cur, _ENTRY_UPSERT_SQL, rows, page_size=500)
        logger.debug("Upserted %d connector space entries", len(rows))
        return cur.rowcount

    def entry_counts(self, connector: str) -> dict[str, int]:
        """Number of stored entries per object type."""
        with self.transaction() as cur:
            cur.execute(
                f"""SELECT object_type, COUNT(*)
                    FROM {ENTRY_TABLE}
                    WHERE connector = %s
                    GROUP BY object_type""",
                (connector,),
            )
            return {object_type: count for object_type, count in cur.fetchall()}

    # ------------------------------------------------------------------
    # Import run tracking
    # ------------------------------------------------------------------

    def record_run_start(
        self,
        connector: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Insert a new import_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO import_runs
                   (id, connector, status, run_metadata)
                   VALUES (%s, %s, 'RUNNING', %s)""",
                (
                    run_id,
                    connector,
                    psycopg2.extras.Json(metadata or {}),
                ),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        customers_imported: int = 0,
        users_imported: int = 0,
        customers_skipped: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        """Finalise an import_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE import_runs
                   SET status = %s,
                       finished_at = NOW(),
                       customers_imported = %s,
                       users_imported = %s,
                       customers_skipped = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s""",
                (
                    status,
                    customers_imported,
                    users_imported,
                    customers_skipped,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                ),
            )

    def get_recent_runs(
        self,
        connector: Optional[str] = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Fetch recent import runs for status display."""
        with self.transaction() as cur:
            if connector:
                cur.execute(
                    """SELECT id, connector, status, started_at, finished_at,
                              customers_imported, users_imported,
                              customers_skipped, error_message
                       FROM import_runs
                       WHERE connector = %s
                       ORDER BY started_at DESC LIMIT %s""",
                    (connector, limit),
                )
            else:
                cur.execute(
                    """SELECT id, connector, status, started_at, finished_at,
                              customers_imported, users_imported,
                              customers_skipped, error_message
                       FROM import_runs
                       ORDER BY started_at DESC LIMIT %s""",
                    (limit,),
                )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
