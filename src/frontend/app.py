"""Main Textual app for the landwatch status panel."""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import ContentSwitcher, Footer, Static, Tab, Tabs

from adapters.sqlite_storage import SQLiteStorage

from .constants import LANDWATCH_GREEN
from .tabs.alerts import AlertsTab
from .tabs.resources import ResourcesTab


class StatusPanelApp(App):
    """Read-only view over the resource store and the alert log."""

    BINDINGS = [
        ("ctrl+r", "reload", "Reload"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    Screen {
        background: #0f1a17;
        color: #e8f5ef;
    }

    #header {
        height: 5;
        padding: 1 4;
        border-bottom: solid #2a463c;
    }

    #header-left, #header-right {
        width: 1fr;
    }

    #header-right {
        text-align: right;
    }

    .subtle {
        color: #c6ddd2;
    }

    #tabs-bar {
        height: 4;
        padding: 0 4;
        align: center middle;
    }

    .panel-title {
        text-style: bold;
        padding: 0 1;
    }

    .panel-actions {
        height: 3;
    }

    .panel-output {
        color: #c6ddd2;
        padding: 0 1;
    }
    """

    def __init__(self, storage: SQLiteStorage, db_path: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.storage = storage
        self._db_path = db_path

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal():
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                with Vertical(id="header-right"):
                    yield Static(f"db: {self._db_path}", classes="subtle")

        with Container(id="tabs-bar"):
            with Center():
                yield Tabs(
                    Tab("Resources", id="resources"),
                    Tab("Alerts", id="alerts"),
                    id="tabs",
                )

        with ContentSwitcher(id="content", initial="resources"):
            yield ResourcesTab(id="resources")
            yield AlertsTab(id="alerts")
        yield Footer()

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        tab_id = event.tab.id or ""
        if tab_id:
            self.query_one("#content", ContentSwitcher).current = tab_id

    def action_reload(self) -> None:
        self.query_one(ResourcesTab).reload()
        self.query_one(AlertsTab).reload()

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("LAND", LANDWATCH_GREEN),
            ("WATCH > Status", "bold"),
        )
