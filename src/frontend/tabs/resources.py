"""Resources tab for browsing tracked projects."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from core.errors import StoreError
from core.models import ResourceRecord

from ..export import export_rows


def resource_row(record: ResourceRecord) -> dict[str, Any]:
    """Flatten a record for display and export."""

    metadata = record.metadata
    row: dict[str, Any] = {
        "resource_id": record.resource_id,
        "available_count": record.available_count,
        "last_seen_by_watcher": _iso(record.last_seen_by_watcher),
        "last_seen_by_indexer": _iso(record.last_seen_by_indexer),
    }
    if metadata is not None:
        meta = asdict(metadata)
        meta.pop("resource_id")
        row.update(meta)
    return row


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


class ResourcesTab(Container):
    """Tracked projects with their last count, metadata, and last-seen times."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="resources-panel"):
            yield Static("Tracked projects", classes="panel-title")
            yield DataTable(id="resources-table", cursor_type="row")
            with Horizontal(classes="panel-actions"):
                yield Button("Refresh", id="resources-refresh")
                yield Button("Export JSON", id="resources-export-json", variant="success")
                yield Button("Export CSV", id="resources-export-csv")
            yield Static("", id="resources-output", classes="panel-output")

    def on_mount(self) -> None:
        table = self.query_one("#resources-table", DataTable)
        table.add_column("id", key="resource_id", width=8)
        table.add_column("count", key="available_count", width=7)
        table.add_column("name", key="name", width=30)
        table.add_column("type", key="project_type", width=16)
        table.add_column("bookable", key="bookable", width=9)
        table.add_column("watched", key="last_seen_by_watcher", width=19)
        table.add_column("indexed", key="last_seen_by_indexer", width=19)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self._table_ready = True
        self.reload()

    @on(Button.Pressed, "#resources-refresh")
    def _on_refresh(self) -> None:
        self.reload()

    @on(Button.Pressed, "#resources-export-json")
    def _on_export_json(self) -> None:
        self._export("json")

    @on(Button.Pressed, "#resources-export-csv")
    def _on_export_csv(self) -> None:
        self._export("csv")

    def reload(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#resources-table", DataTable)
        table.clear()
        try:
            records = self.app.storage.list_resources()
        except StoreError as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        self._rows = [resource_row(record) for record in records]
        for row in self._rows:
            count = row["available_count"]
            table.add_row(
                str(row["resource_id"]),
                "?" if count is None else str(count),
                row.get("name", ""),
                row.get("project_type", ""),
                "yes" if row.get("bookable") else "",
                row["last_seen_by_watcher"][:19].replace("T", " "),
                row["last_seen_by_indexer"][:19].replace("T", " "),
                key=str(row["resource_id"]),
            )
        self._set_output(f"loaded {len(self._rows)} projects")

    def _export(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No projects to export.")
            return
        try:
            path = export_rows(self._rows, "resources", fmt)
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")
            return
        self._set_output(f"exported {len(self._rows)} projects to {path}")

    def _set_output(self, message: str) -> None:
        self.query_one("#resources-output", Static).update(message)
