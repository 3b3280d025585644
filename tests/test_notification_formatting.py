from __future__ import annotations

import pytest

from adapters.notification_formatting import (
    DEFAULT_DEVELOPER,
    format_alert,
    format_error,
    generate_maps_link,
    project_type_label,
)
from core.models import AlertReason, ResourceMetadata


def _record(**overrides) -> ResourceMetadata:
    values = dict(
        resource_id=512,
        name="Al <Arid>",
        available_units=14,
        min_price=350000.0,
        latitude=24.9,
        longitude=46.6,
        city="Riyadh",
        project_type="lands_moh_land",
        bookable=True,
        views_count=12345,
    )
    values.update(overrides)
    return ResourceMetadata(**values)


def test_html_alert_escapes_and_includes_core_fields() -> None:
    body = format_alert(_record(), AlertReason.RESTOCKED, "html")

    assert body.startswith("<b>Units are available again!</b>")
    assert "<b>Name:</b> Al &lt;Arid&gt;" in body
    assert "<b>Available units:</b> 14" in body
    assert "350,000 SAR" in body
    assert "12,345" in body
    assert "google.com/maps?q=24.9,46.6" in body
    assert "<code>ID: 512</code>" in body


def test_html_alert_falls_back_to_default_developer() -> None:
    body = format_alert(_record(developer=""), AlertReason.NEW_LISTING, "html")

    assert DEFAULT_DEVELOPER in body
    assert "New opportunity available now!" in body


def test_markdown_alert_links_to_project_page() -> None:
    body = format_alert(_record(latitude=None), AlertReason.AVAILABLE, "markdown")

    assert "**Book:**" in body
    assert "https://sakani.sa/app/land-projects/512" in body
    assert "**Map:**" not in body


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(ValueError):
        format_alert(_record(), AlertReason.RESTOCKED, "plain")


def test_maps_link_requires_both_coordinates() -> None:
    assert generate_maps_link(None, 46.6) is None
    assert generate_maps_link(24.9, 46.6) == "https://www.google.com/maps?q=24.9,46.6"


def test_project_type_label_prefers_known_labels() -> None:
    assert project_type_label("lands_moh_land") == "Ministry housing land"
    assert project_type_label("villa") == "villa"
    assert project_type_label("") == "Residential project"


def test_error_body_is_safe_for_each_mode() -> None:
    assert "&lt;script&gt;" in format_error("<script>", "html")
    assert format_error("bad `tick`", "markdown").endswith("`bad 'tick'`")
