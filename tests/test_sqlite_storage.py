from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest

from adapters.sqlite_storage import SQLiteStorage
from core.errors import StoreError
from core.models import AlertRecord, ResourceMetadata


def _storage(tmp_path) -> SQLiteStorage:
    storage = SQLiteStorage(str(tmp_path / "landwatch.db"))
    storage.init_db()
    return storage


def _metadata(resource_id: int = 1, **overrides) -> ResourceMetadata:
    values = dict(
        resource_id=resource_id,
        name="Al Arid",
        available_units=12,
        min_price=350000.0,
        latitude=24.9,
        longitude=46.6,
        city="Riyadh",
        region="Riyadh Region",
        project_type="lands_moh_land",
        bookable=True,
        developer="ROSHN",
        views_count=1200,
        banner_url="https://example.com/banner.jpg",
    )
    values.update(overrides)
    return ResourceMetadata(**values)


def test_get_missing_resource_returns_none(tmp_path) -> None:
    assert _storage(tmp_path).get(404) is None


def test_upsert_count_creates_minimal_record(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_count(1, 0)

    record = storage.get(1)
    assert record is not None
    assert record.available_count == 0
    assert record.metadata is None
    assert record.last_seen_by_watcher is not None
    assert record.last_seen_by_indexer is None


def test_upsert_count_twice_is_idempotent(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_metadata(_metadata())
    storage.upsert_count(1, 5)
    first = storage.get(1)
    storage.upsert_count(1, 5)
    second = storage.get(1)

    assert first.available_count == second.available_count == 5
    assert first.metadata == second.metadata
    assert len(storage.list_resources()) == 1


def test_metadata_upsert_never_touches_count(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_count(1, 7)
    storage.upsert_metadata(_metadata(available_units=0, name="Renamed"))

    record = storage.get(1)
    assert record.available_count == 7
    assert record.metadata.name == "Renamed"
    assert record.metadata.available_units == 0


def test_count_upsert_never_touches_metadata(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_metadata(_metadata())
    storage.upsert_count(1, 0)

    record = storage.get(1)
    assert record.metadata == _metadata()
    assert record.last_seen_by_indexer is not None


def test_metadata_only_record_has_unknown_count(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_metadata(_metadata(resource_id=9))

    record = storage.get(9)
    assert record.available_count is None
    assert record.metadata.resource_id == 9


def test_alert_log_is_newest_first(tmp_path) -> None:
    storage = _storage(tmp_path)
    for minute, resource_id in ((1, 10), (2, 11)):
        storage.save_alert(
            AlertRecord(
                resource_id=resource_id,
                reason="restocked",
                source="validation",
                units=3,
                name=f"project {resource_id}",
                created_at=datetime(2024, 1, 1, 12, minute, tzinfo=timezone.utc),
            )
        )

    alerts = storage.list_alerts()
    assert [alert.resource_id for alert in alerts] == [11, 10]
    assert alerts[0].created_at.tzinfo is not None


def test_init_db_adds_missing_columns_and_keeps_counts(tmp_path) -> None:
    db_path = tmp_path / "legacy.db"
    with sqlite3.connect(db_path) as conn:
        conn.execute("CREATE TABLE resources (resource_id INTEGER PRIMARY KEY, available_count INTEGER)")
        conn.execute("INSERT INTO resources VALUES (3, 4)")
    conn.close()

    storage = SQLiteStorage(str(db_path))
    storage.init_db()
    storage.upsert_metadata(_metadata(resource_id=3))

    record = storage.get(3)
    assert record.available_count == 4
    assert record.metadata.name == "Al Arid"


def test_sqlite_failures_surface_as_store_error(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "never-initialized.db"))
    with pytest.raises(StoreError):
        storage.get(1)
