"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from typing import Optional

from core.models import AlertReason, ResourceMetadata

PROJECT_URL_TEMPLATE = "https://sakani.sa/app/land-projects/{resource_id}"
DEFAULT_DEVELOPER = "Ministry of Municipal and Rural Affairs and Housing"
PROJECT_TYPE_LABELS = {
    "lands_moh_land": "Ministry housing land",
}
HEADLINES = {
    AlertReason.NEW_LISTING: "New opportunity available now!",
    AlertReason.RESTOCKED: "Units are available again!",
    AlertReason.AVAILABLE: "Opportunity available now!",
}


def generate_maps_link(latitude: Optional[float], longitude: Optional[float]) -> Optional[str]:
    """Return a Google Maps link, or None when coordinates are missing."""

    if not latitude or not longitude:
        return None
    return f"https://www.google.com/maps?q={latitude},{longitude}"


def generate_project_url(resource_id: int) -> str:
    return PROJECT_URL_TEMPLATE.format(resource_id=resource_id)


def project_type_label(project_type: str) -> str:
    return PROJECT_TYPE_LABELS.get(project_type) or project_type or "Residential project"


def _format_price(value: float) -> str:
    return f"{value:,.0f} SAR"


def _format_html(record: ResourceMetadata, reason: AlertReason) -> str:
    """Create the HTML notification body used by the Bot API adapter."""

    developer = html.escape(record.developer or DEFAULT_DEVELOPER)
    lines = [
        f"<b>{html.escape(HEADLINES[reason])}</b>",
        "",
        f"<b>Name:</b> {html.escape(record.name)}",
        f"<b>Developer:</b> {developer}",
        f"<b>Type:</b> {html.escape(project_type_label(record.project_type))}",
    ]
    location = ", ".join(part for part in (record.city, record.region) if part)
    if location:
        lines.append(f"<b>Location:</b> {html.escape(location)}")
    lines.extend(
        [
            "",
            f"<b>Price:</b> {_format_price(record.min_price)}",
            f"<b>Available units:</b> {record.available_units}",
            f"<b>Views:</b> {record.views_count:,}",
        ]
    )

    maps_link = generate_maps_link(record.latitude, record.longitude)
    if maps_link:
        safe_link = html.escape(maps_link)
        lines.extend(["", f"<b>Map:</b> <a href=\"{safe_link}\">Open in Google Maps</a>"])

    lines.extend(["", f"<code>ID: {record.resource_id}</code>"])
    return "\n".join(lines)


def _format_markdown(record: ResourceMetadata, reason: AlertReason) -> str:
    """Create the Markdown notification body used by Saved Messages."""

    # Telegram Markdown is supported by passing parse_mode="Markdown".
    def escape_md(value: str) -> str:
        for ch in r"*[`":
            value = value.replace(ch, f"\\{ch}")
        return value

    divider = "──────────────"
    lines = [
        f"**{escape_md(HEADLINES[reason])}**",
        divider,
        f"**Name:** {escape_md(record.name)}",
        f"**Developer:** {escape_md(record.developer or DEFAULT_DEVELOPER)}",
        f"**Type:** {escape_md(project_type_label(record.project_type))}",
        f"**Price:** {_format_price(record.min_price)}",
        f"**Available units:** {record.available_units}",
        f"**Views:** {record.views_count:,}",
    ]

    maps_link = generate_maps_link(record.latitude, record.longitude)
    if maps_link:
        lines.extend(["", "**Map:**", maps_link])
    lines.extend(["", "**Book:**", generate_project_url(record.resource_id)])

    lines.append(divider)
    return "\n".join(lines)


def format_alert(record: ResourceMetadata, reason: AlertReason, mode: str) -> str:
    """Return the alert formatted for the requested mode."""

    if mode == "markdown":
        return _format_markdown(record, reason)
    if mode == "html":
        return _format_html(record, reason)
    raise ValueError(f"Unsupported notification format: {mode}")


def format_error(message: str, mode: str) -> str:
    """Return an operator-facing error body."""

    if mode == "html":
        return f"<b>landwatch error</b>\n\n<code>{html.escape(message)}</code>"
    if mode == "markdown":
        safe = message.replace("`", "'")
        return f"**landwatch error**\n\n`{safe}`"
    raise ValueError(f"Unsupported notification format: {mode}")
