"""Telegram notification adapter for Saved Messages.

Formats a human-readable Markdown message and sends it to Saved Messages.
"""

from __future__ import annotations

from telethon import errors

from adapters.notification_formatting import format_alert, format_error
from core.errors import DispatchError
from core.models import AlertReason, ResourceMetadata


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends alerts to the user's Saved Messages."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, record: ResourceMetadata, reason: AlertReason) -> None:
        """Send the formatted alert to Saved Messages."""

        message = format_alert(record, reason, mode="markdown")
        await self._send(message)

    async def send_error(self, message: str) -> None:
        await self._send(format_error(message, mode="markdown"))

    async def _send(self, message: str) -> None:
        try:
            await self._client.send_message("me", message, parse_mode="Markdown", link_preview=False)
        except (errors.RPCError, ConnectionError) as exc:
            raise DispatchError(f"Saved Messages delivery failed: {exc}") from exc
