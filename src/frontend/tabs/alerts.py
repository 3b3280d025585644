"""Alerts tab for viewing and exporting dispatched alerts."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from core.errors import StoreError

from ..export import export_rows


class AlertsTab(Container):
    """Alert log, newest first."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="alerts-panel"):
            yield Static("Sent alerts", classes="panel-title")
            yield DataTable(id="alerts-table", cursor_type="row")
            with Horizontal(classes="panel-actions"):
                yield Button("Refresh", id="alerts-refresh")
                yield Button("Export JSON", id="alerts-export-json", variant="success")
                yield Button("Export CSV", id="alerts-export-csv")
            yield Static("", id="alerts-output", classes="panel-output")

    def on_mount(self) -> None:
        table = self.query_one("#alerts-table", DataTable)
        table.add_column("date", key="created_at", width=19)
        table.add_column("id", key="resource_id", width=8)
        table.add_column("name", key="name", width=30)
        table.add_column("reason", key="reason", width=12)
        table.add_column("source", key="source", width=18)
        table.add_column("units", key="units", width=6)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self._table_ready = True
        self.reload()

    @on(Button.Pressed, "#alerts-refresh")
    def _on_refresh(self) -> None:
        self.reload()

    @on(Button.Pressed, "#alerts-export-json")
    def _on_export_json(self) -> None:
        self._export("json")

    @on(Button.Pressed, "#alerts-export-csv")
    def _on_export_csv(self) -> None:
        self._export("csv")

    def reload(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#alerts-table", DataTable)
        table.clear()
        try:
            alerts = self.app.storage.list_alerts()
        except StoreError as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        self._rows = []
        for index, alert in enumerate(alerts):
            row = asdict(alert)
            row["created_at"] = alert.created_at.isoformat()
            self._rows.append(row)
            table.add_row(
                row["created_at"][:19].replace("T", " "),
                str(alert.resource_id),
                alert.name,
                alert.reason,
                alert.source,
                str(alert.units),
                key=str(index),
            )
        self._set_output(f"loaded {len(self._rows)} alerts")

    def _export(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No alerts to export.")
            return
        try:
            path = export_rows(self._rows, "alerts", fmt)
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")
            return
        self._set_output(f"exported {len(self._rows)} alerts to {path}")

    def _set_output(self, message: str) -> None:
        self.query_one("#alerts-output", Static).update(message)
