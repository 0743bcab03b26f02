"""
Spark state persistence.
Uses SQLite to keep one opaque JSON document per spark id.
"""
import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from .models import SparkState

log = logging.getLogger(__name__)

TABLE_NAME = "spark_state"


class SparkStore:
    """load_schedule / save_schedule keyed by spark id."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self.initialize()

    def get_db_connection(self):
        """Establishes a connection to the SQLite database."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Access columns by name
        return conn

    def initialize(self):
        """Creates the state table if it doesn't exist."""
        try:
            with self.get_db_connection() as conn:
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                        spark_id TEXT PRIMARY KEY,
                        data TEXT NOT NULL,          -- JSON document, ISO 8601 datetimes
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
            log.info(f"Spark store initialized at {self.db_path}")
        except sqlite3.Error as e:
            log.error(f"Error initializing spark store: {e}", exc_info=True)
            raise

    def load_schedule(self, spark_id: str) -> Optional[SparkState]:
        """Returns the stored state, or None when absent or unreadable."""
        try:
            with self.get_db_connection() as conn:
                row = conn.execute(f"SELECT data FROM {TABLE_NAME} WHERE spark_id = ?", (spark_id,)).fetchone()
        except sqlite3.Error as e:
            log.error(f"Error loading state for {spark_id}: {e}", exc_info=True)
            return None

        if row is None:
            log.debug(f"No stored state for {spark_id}.")
            return None
        try:
            return SparkState.model_validate_json(row["data"])
        except ValidationError as e:
            log.error(f"Stored state for {spark_id} is invalid, ignoring it: {e}")
            return None

    def save_schedule(self, spark_id: str, state: SparkState) -> bool:
        """Upserts the state. Returns False if the write failed."""
        now_utc_iso = datetime.now(timezone.utc).isoformat()
        state = state.model_copy(update={"last_used": datetime.now(timezone.utc)})
        try:
            with self.get_db_connection() as conn:
                conn.execute(f"""
                    INSERT INTO {TABLE_NAME} (spark_id, data, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(spark_id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                """, (spark_id, state.model_dump_json(), now_utc_iso))
                conn.commit()
            log.debug(f"State for {spark_id} saved.")
            return True
        except sqlite3.Error as e:
            log.error(f"Error saving state for {spark_id}: {e}", exc_info=True)
            return False

    def delete(self, spark_id: str) -> bool:
        try:
            with self.get_db_connection() as conn:
                cursor = conn.execute(f"DELETE FROM {TABLE_NAME} WHERE spark_id = ?", (spark_id,))
                conn.commit()
            log.info(f"Deleted {cursor.rowcount} stored state rows for {spark_id}.")
            return True
        except sqlite3.Error as e:
            log.error(f"Error deleting state for {spark_id}: {e}", exc_info=True)
            return False

    def spark_ids(self) -> List[str]:
        try:
            with self.get_db_connection() as conn:
                return [row["spark_id"] for row in conn.execute(f"SELECT spark_id FROM {TABLE_NAME} ORDER BY spark_id")]
        except sqlite3.Error as e:
            log.error(f"Error listing stored sparks: {e}", exc_info=True)
            return []
