"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from core.errors import StoreError
from core.models import AlertRecord, ResourceMetadata, ResourceRecord

LOGGER = logging.getLogger(__name__)

# Metadata columns written by upsert_metadata, in ResourceMetadata order.
# New columns must be appended here; init_db adds them to older databases.
_METADATA_COLUMNS = [
    ("name", "TEXT NOT NULL DEFAULT ''"),
    ("metadata_units", "INTEGER NOT NULL DEFAULT 0"),
    ("min_price", "REAL NOT NULL DEFAULT 0"),
    ("latitude", "REAL"),
    ("longitude", "REAL"),
    ("city", "TEXT NOT NULL DEFAULT ''"),
    ("region", "TEXT NOT NULL DEFAULT ''"),
    ("project_type", "TEXT NOT NULL DEFAULT ''"),
    ("bookable", "INTEGER NOT NULL DEFAULT 0"),
    ("developer", "TEXT NOT NULL DEFAULT ''"),
    ("views_count", "INTEGER NOT NULL DEFAULT 0"),
    ("banner_url", "TEXT NOT NULL DEFAULT ''"),
    ("has_metadata", "INTEGER NOT NULL DEFAULT 0"),
    ("last_seen_by_watcher", "TIMESTAMP"),
    ("last_seen_by_indexer", "TIMESTAMP"),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str, timeout: float = 10.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self, resource_id: Optional[int] = None) -> Iterator[sqlite3.Connection]:
        # Every sqlite failure leaves the adapter as a StoreError so callers
        # can skip only the affected resource.
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except sqlite3.Error as exc:
            target = f" for resource {resource_id}" if resource_id is not None else ""
            raise StoreError(f"SQLite error{target}: {exc}", resource_id=resource_id) from exc

    def init_db(self) -> None:
        """Create tables if they do not exist and add missing columns.

        Tables:
        - resources: one row per project, count and metadata side by side
        - alerts: append-only log of dispatched alerts
        """

        directory = os.path.dirname(self._db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with self._transaction() as conn:
            # resources keeps the last counter value and the last metadata per
            # project. available_count is NULL until the watcher has counted
            # the project, which is distinct from a count of 0.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS resources (
                    resource_id INTEGER PRIMARY KEY,
                    available_count INTEGER
                )
                """
            )
            existing = {row["name"] for row in conn.execute("PRAGMA table_info(resources)")}
            # Schema evolution is additive only: the key and the count column
            # survive every upgrade.
            for column, decl in _METADATA_COLUMNS:
                if column not in existing:
                    conn.execute(f"ALTER TABLE resources ADD COLUMN {column} {decl}")
                    LOGGER.info("Added column resources.%s", column)

            # alerts is an append-only audit log of what was dispatched.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resource_id INTEGER NOT NULL,
                    reason TEXT NOT NULL,
                    source TEXT NOT NULL,
                    units INTEGER NOT NULL,
                    name TEXT,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )

    def get(self, resource_id: int) -> Optional[ResourceRecord]:
        """Return the stored record for a project, if any."""

        with self._transaction(resource_id) as conn:
            row = conn.execute(
                "SELECT * FROM resources WHERE resource_id = ?",
                (resource_id,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def upsert_count(self, resource_id: int, count: int) -> None:
        """Replace the stored count; only the count and watcher timestamp change."""

        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        with self._transaction(resource_id) as conn:
            conn.execute(
                """
                INSERT INTO resources (resource_id, available_count, last_seen_by_watcher)
                VALUES (?, ?, ?)
                ON CONFLICT(resource_id) DO UPDATE SET
                    available_count = excluded.available_count,
                    last_seen_by_watcher = excluded.last_seen_by_watcher
                """,
                (resource_id, count, _now()),
            )

    def upsert_metadata(self, metadata: ResourceMetadata) -> None:
        """Write every metadata column without touching available_count."""

        values = (
            metadata.resource_id,
            metadata.name,
            metadata.available_units,
            metadata.min_price,
            metadata.latitude,
            metadata.longitude,
            metadata.city,
            metadata.region,
            metadata.project_type,
            int(metadata.bookable),
            metadata.developer,
            metadata.views_count,
            metadata.banner_url,
            _now(),
        )
        with self._transaction(metadata.resource_id) as conn:
            conn.execute(
                """
                INSERT INTO resources (
                    resource_id, name, metadata_units, min_price, latitude, longitude,
                    city, region, project_type, bookable, developer, views_count,
                    banner_url, has_metadata, last_seen_by_indexer
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                ON CONFLICT(resource_id) DO UPDATE SET
                    name = excluded.name,
                    metadata_units = excluded.metadata_units,
                    min_price = excluded.min_price,
                    latitude = excluded.latitude,
                    longitude = excluded.longitude,
                    city = excluded.city,
                    region = excluded.region,
                    project_type = excluded.project_type,
                    bookable = excluded.bookable,
                    developer = excluded.developer,
                    views_count = excluded.views_count,
                    banner_url = excluded.banner_url,
                    has_metadata = 1,
                    last_seen_by_indexer = excluded.last_seen_by_indexer
                """,
                values,
            )

    def save_alert(self, alert: AlertRecord) -> None:
        """Persist a dispatched alert to the append-only alerts table."""

        with self._transaction(alert.resource_id) as conn:
            conn.execute(
                """
                INSERT INTO alerts (resource_id, reason, source, units, name, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.resource_id,
                    alert.reason,
                    alert.source,
                    alert.units,
                    alert.name,
                    alert.created_at.isoformat(),
                ),
            )

    def list_resources(self) -> List[ResourceRecord]:
        """Return every tracked project ordered by id."""

        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM resources ORDER BY resource_id").fetchall()
        return [self._row_to_record(row) for row in rows]

    def list_alerts(self, limit: int = 500) -> List[AlertRecord]:
        """Return the most recent alerts, newest first."""

        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM alerts ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            AlertRecord(
                resource_id=row["resource_id"],
                reason=row["reason"],
                source=row["source"],
                units=row["units"],
                name=row["name"] or "",
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ResourceRecord:
        metadata = None
        if row["has_metadata"]:
            metadata = ResourceMetadata(
                resource_id=row["resource_id"],
                name=row["name"],
                available_units=row["metadata_units"],
                min_price=row["min_price"],
                latitude=row["latitude"],
                longitude=row["longitude"],
                city=row["city"],
                region=row["region"],
                project_type=row["project_type"],
                bookable=bool(row["bookable"]),
                developer=row["developer"],
                views_count=row["views_count"],
                banner_url=row["banner_url"],
            )
        count = row["available_count"]
        return ResourceRecord(
            resource_id=row["resource_id"],
            available_count=int(count) if count is not None else None,
            metadata=metadata,
            last_seen_by_watcher=_parse_ts(row["last_seen_by_watcher"]),
            last_seen_by_indexer=_parse_ts(row["last_seen_by_indexer"]),
        )
