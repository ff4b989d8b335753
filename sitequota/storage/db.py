"""DuckDB storage for sitequota configuration and access history.

The store is the configuration provider and access history provider for
the rule engine. It hands out immutable snapshots, validates stored
configuration on the way out, and serializes read-decide-append sequences
through transaction().
"""

import json
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb

from sitequota.models import AccessRecord, Configuration
from sitequota.rules.access_window import MS_PER_MINUTE, to_epoch_ms
from sitequota.validation import ValidationError, configuration_to_dict, parse_configuration

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class AccessStore:
    """DuckDB-backed storage for rule configuration and access records."""

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the DuckDB database file. Use ":memory:" for in-memory.
            read_only: If True, open in read-only mode.
        """
        self.db_path = db_path
        self.read_only = read_only
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        db_str = str(self.db_path) if self.db_path != Path(":memory:") else ":memory:"
        self._conn = duckdb.connect(db_str, read_only=self.read_only)

        if not self.read_only:
            self._ensure_schema()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "AccessStore":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get the database connection, raising if not connected."""
        if self._conn is None:
            raise RuntimeError("AccessStore not connected. Call connect() first.")
        return self._conn

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        result = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current_version = result[0] if result and result[0] else 0

        if current_version < SCHEMA_VERSION:
            self._apply_schema()
            self.conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                [SCHEMA_VERSION]
            )

    def _apply_schema(self) -> None:
        """Apply the database schema."""
        # Single-row table holding the configuration as a JSON document
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS configuration (
                id INTEGER PRIMARY KEY,
                data VARCHAR NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS access_records (
                id VARCHAR PRIMARY KEY,
                site VARCHAR NOT NULL,
                timestamp_ms BIGINT NOT NULL,
                source_id VARCHAR NOT NULL,
                recorded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_access_timestamp
            ON access_records (timestamp_ms)
        """)

    @contextmanager
    def transaction(self) -> Iterator["AccessStore"]:
        """Serialize a read-decide-append sequence.

        Holds the store lock and a database transaction for the duration of
        the block, so an append made inside it is visible to the next reader
        and two concurrent navigations cannot both read the same history.
        """
        with self._lock:
            self.conn.begin()
            try:
                yield self
            except BaseException:
                self.conn.rollback()
                raise
            else:
                self.conn.commit()

    def initialize(self, default: Configuration) -> bool:
        """Write `default` as the configuration if none is stored yet.

        Returns:
            True if the default was written (first run)
        """
        with self._lock:
            result = self.conn.execute("SELECT COUNT(*) FROM configuration").fetchone()
            if result and result[0] > 0:
                return False

            logger.info(f"Initializing configuration with {len(default.groups)} rule groups")
            self.save_configuration(default)
            return True

    def get_configuration(self) -> Optional[Configuration]:
        """Load the stored configuration.

        Returns:
            The configuration, or None if nothing is stored or the stored
            document is invalid
        """
        result = self.conn.execute(
            "SELECT data FROM configuration WHERE id = 1"
        ).fetchone()
        if not result:
            return None

        try:
            return parse_configuration(json.loads(result[0]))
        except json.JSONDecodeError as e:
            logger.error(f"Stored configuration is not valid JSON: {e}")
            return None
        except ValidationError as e:
            logger.error(f"Invalid configuration in storage: {e.errors}")
            return None

    def save_configuration(self, configuration: Configuration) -> None:
        """Replace the stored configuration."""
        data = json.dumps(configuration_to_dict(configuration))
        with self._lock:
            existing = self.conn.execute(
                "SELECT COUNT(*) FROM configuration WHERE id = 1"
            ).fetchone()
            if existing and existing[0]:
                self.conn.execute(
                    "UPDATE configuration SET data = ?, updated_at = CURRENT_TIMESTAMP WHERE id = 1",
                    [data],
                )
            else:
                self.conn.execute(
                    "INSERT INTO configuration (id, data) VALUES (1, ?)",
                    [data],
                )
        logger.info(f"Configuration saved ({len(configuration.groups)} rule groups)")

    def get_access_records(self) -> list[AccessRecord]:
        """Return every stored access record, oldest first."""
        rows = self.conn.execute("""
            SELECT site, timestamp_ms, source_id FROM access_records
            ORDER BY timestamp_ms
        """).fetchall()
        return [
            AccessRecord(site=site, timestamp=timestamp, source_id=source_id)
            for site, timestamp, source_id in rows
        ]

    def add_access_record(self, record: AccessRecord) -> str:
        """Append an access record and return its ID."""
        record_id = str(uuid.uuid4())
        with self._lock:
            self.conn.execute("""
                INSERT INTO access_records (id, site, timestamp_ms, source_id)
                VALUES (?, ?, ?, ?)
            """, [record_id, record.site, record.timestamp, record.source_id])
        logger.info(f"Access recorded: {record.site} (source {record.source_id})")
        return record_id

    def prune_access_records(self, max_age_minutes: int, now: datetime) -> int:
        """Delete records older than `max_age_minutes` before `now`.

        Returns:
            Number of records removed
        """
        cutoff = to_epoch_ms(now) - max_age_minutes * MS_PER_MINUTE
        with self._lock:
            result = self.conn.execute(
                "SELECT COUNT(*) FROM access_records WHERE timestamp_ms < ?",
                [cutoff],
            ).fetchone()
            removed = result[0] if result else 0
            if removed:
                self.conn.execute(
                    "DELETE FROM access_records WHERE timestamp_ms < ?",
                    [cutoff],
                )
                logger.info(f"Pruned {removed} old access records")
        return removed

    def clear_all(self) -> None:
        """Delete the configuration and all access records."""
        with self._lock:
            self.conn.execute("DELETE FROM configuration")
            self.conn.execute("DELETE FROM access_records")
        logger.info("All stored data cleared")

    def get_stats(self) -> dict:
        """Get row counts and the oldest/newest record timestamps."""
        configuration = self.get_configuration()
        records = self.conn.execute("""
            SELECT COUNT(*), MIN(timestamp_ms), MAX(timestamp_ms), COUNT(DISTINCT site)
            FROM access_records
        """).fetchone()
        version = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()

        count, oldest, newest, sites = records if records else (0, None, None, 0)
        return {
            "groups": len(configuration.groups) if configuration else 0,
            "records": count,
            "sites": sites,
            "oldest": oldest,
            "newest": newest,
            "version": version[0] if version and version[0] else 0,
        }
