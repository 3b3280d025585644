"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so alerts can be routed to several admin chats.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import httpx

from adapters.notification_formatting import format_alert, format_error, generate_project_url
from core.errors import DispatchError
from core.models import AlertReason, ResourceMetadata

LOGGER = logging.getLogger(__name__)


class TelegramBotNotifier:
    """Notifier adapter that sends alerts via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_ids: Iterable[str],
        *,
        session: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_ids = [str(chat_id) for chat_id in chat_ids]
        if not self._chat_ids:
            raise ValueError("at least one admin chat id is required")
        self._session = session or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self._session.aclose()

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    async def send(self, record: ResourceMetadata, reason: AlertReason) -> None:
        """Send the alert to every admin chat.

        Raises DispatchError only when no chat received it.
        """

        text = format_alert(record, reason, mode="html")
        markup = {
            "inline_keyboard": [
                [{"text": "Book now", "url": generate_project_url(record.resource_id)}],
            ]
        }
        delivered = 0
        for chat_id in self._chat_ids:
            if await self._deliver(chat_id, text, markup, record.banner_url):
                delivered += 1
        if delivered == 0:
            raise DispatchError(f"alert for {record.resource_id} reached none of {len(self._chat_ids)} chats")

    async def send_error(self, message: str) -> None:
        """Send an operator error report to every admin chat."""

        text = format_error(message, mode="html")
        for chat_id in self._chat_ids:
            try:
                await self._post("sendMessage", {"chat_id": chat_id, "text": text, "parse_mode": "HTML"})
            except DispatchError:
                LOGGER.exception("Failed to send error notification to %s", chat_id)

    async def _deliver(self, chat_id: str, text: str, markup: dict[str, Any], banner_url: str) -> bool:
        if banner_url.strip():
            try:
                await self._post(
                    "sendPhoto",
                    {
                        "chat_id": chat_id,
                        "photo": banner_url,
                        "caption": text,
                        "parse_mode": "HTML",
                        "reply_markup": markup,
                    },
                )
                return True
            except DispatchError as exc:
                # Telegram rejects some banner URLs; text-only still carries the alert.
                LOGGER.warning("Photo alert to %s failed (%s); retrying as text", chat_id, exc)

        try:
            await self._post(
                "sendMessage",
                {
                    "chat_id": chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                    "reply_markup": markup,
                    "disable_web_page_preview": True,
                },
            )
        except DispatchError:
            LOGGER.exception("Failed to send alert to %s", chat_id)
            return False
        return True

    async def _post(self, method: str, payload: dict[str, Any]) -> None:
        try:
            response = await self._session.post(self._endpoint(method), json=payload)
        except httpx.HTTPError as exc:
            raise DispatchError(f"Bot API {method} transport error: {type(exc).__name__}") from exc
        if response.status_code != 200:
            raise DispatchError(f"Bot API error {response.status_code}: {response.text}")
