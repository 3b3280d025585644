"""Application entry point for the landwatch watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from contextlib import AsyncExitStack
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.sakani_feeds import SakaniClient
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from client import authorize, build_client
from core.config import FeedConfig, IndexerConfig, WatcherConfig
from core.errors import DispatchError, FeedFetchError
from core.filters import build_resource_filter
from core.indexer import MetadataIndexer
from core.models import AlertReason, ResourceMetadata
from core.scheduler import Scheduler
from core.verification import VerificationPipeline
from core.watcher import AvailabilityWatcher

NAME = "LANDWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/landwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # httpx logs every request at INFO; that drowns the cycle summaries.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _feed_config() -> FeedConfig:
    if not settings.COUNTERS_URL or not settings.SEARCH_URL:
        raise RuntimeError("feeds.counters_url and feeds.search_url are required in config.json")
    return FeedConfig(
        counters_url=settings.COUNTERS_URL,
        search_url=settings.SEARCH_URL,
        validation_url=settings.VALIDATION_URL,
        timeout_seconds=settings.FEED_TIMEOUT_SECONDS,
        validation_rate_per_second=settings.VALIDATION_RATE_PER_SECOND,
        raw_dump_dir=settings.RAW_DUMP_DIR,
    )


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


async def _build_notifier(stack: AsyncExitStack):
    """Select the notification adapter based on configuration.

    This keeps the core watcher independent from delivery details.
    """

    if settings.NOTIFICATION_METHOD == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required when notification_method=bot")
        if not settings.ADMIN_CHAT_IDS:
            raise RuntimeError("notifications.admin_chat_ids is required for bot notifications")
        notifier = TelegramBotNotifier(bot_token=bot_token, chat_ids=settings.ADMIN_CHAT_IDS)
        stack.push_async_callback(notifier.close)
    elif settings.NOTIFICATION_METHOD == "saved_messages":
        client = build_client()
        await client.connect()
        stack.push_async_callback(client.disconnect)
        if not await client.is_user_authorized():
            raise RuntimeError("Telegram session is not authorized; run 'landwatch login' first")
        notifier = TelegramSavedMessagesNotifier(client)
    else:
        raise RuntimeError("notification_method must be 'bot' or 'saved_messages'")
    LOGGER.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)
    return notifier


def _install_stop_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops lack signal handlers; Ctrl+C still raises
            # KeyboardInterrupt there.
            pass


async def _run_async() -> None:
    watcher_config = WatcherConfig(
        interval_seconds=settings.WATCHER_INTERVAL_SECONDS,
        verify_concurrency=settings.VERIFY_CONCURRENCY,
        project_types=settings.PROJECT_TYPES,
    )
    indexer_config = IndexerConfig(
        enabled=settings.INDEXER_ENABLED,
        interval_seconds=settings.INDEXER_INTERVAL_SECONDS,
    )

    storage = _open_storage()
    async with AsyncExitStack() as stack:
        notifier = await _build_notifier(stack)
        operator = notifier if settings.NOTIFY_OPERATOR_ON_ERROR else None

        try:
            feeds = SakaniClient(_feed_config())
        except Exception as exc:
            if operator is not None:
                await operator.send_error(f"Initialization failed: {exc}")
            raise
        stack.push_async_callback(feeds.close)

        watcher = AvailabilityWatcher(
            storage=storage,
            counter_feed=feeds,
            metadata_feed=feeds,
            pipeline=VerificationPipeline(feeds, concurrency=watcher_config.verify_concurrency),
            notifier=notifier,
            resource_filter=build_resource_filter(watcher_config.project_types),
        )
        indexer = MetadataIndexer(storage, feeds) if indexer_config.enabled else None
        scheduler = Scheduler(
            watcher,
            watcher_config.interval_seconds,
            indexer=indexer,
            indexer_interval=indexer_config.interval_seconds if indexer else None,
            operator=operator,
        )

        stop = asyncio.Event()
        _install_stop_handlers(stop)
        await scheduler.start()
        LOGGER.info("Watching for availability changes. Press Ctrl+C to stop.")
        try:
            await stop.wait()
        finally:
            LOGGER.info("Shutting down...")
            # Cycles finish their current resource before the store and the
            # HTTP clients are released by the exit stack.
            await scheduler.shutdown()


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting landwatch")
    try:
        asyncio.run(_run_async())
    except KeyboardInterrupt:
        pass
    LOGGER.info("Goodbye")


def _index() -> None:
    _configure_logging()

    async def _run_index() -> int:
        storage = _open_storage()
        feeds = SakaniClient(_feed_config())
        try:
            report = await MetadataIndexer(storage, feeds).run_cycle()
        except FeedFetchError as exc:
            LOGGER.error("Indexing failed: %s", exc)
            return 1
        finally:
            await feeds.close()
        print(f"Indexed {report.written} of {report.fetched} projects ({report.store_errors} store errors)")
        return 0

    raise SystemExit(asyncio.run(_run_index()))


def _notify_test() -> None:
    _configure_logging()
    sample = ResourceMetadata(
        resource_id=0,
        name="landwatch test alert",
        available_units=1,
        min_price=250000,
        latitude=24.7136,
        longitude=46.6753,
        city="Riyadh",
        project_type="lands_moh_land",
        bookable=True,
    )

    async def _send() -> int:
        async with AsyncExitStack() as stack:
            notifier = await _build_notifier(stack)
            try:
                await notifier.send(sample, AlertReason.AVAILABLE)
            except DispatchError as exc:
                LOGGER.error("Test alert failed: %s", exc)
                return 1
        print("Test alert sent")
        return 0

    raise SystemExit(asyncio.run(_send()))


def _status() -> None:
    from frontend.app import StatusPanelApp

    StatusPanelApp(_open_storage(), settings.DB_PATH).run()


def _login() -> None:
    _print_banner()
    _configure_logging()
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        try:
            await authorize(client)
        finally:
            await client.disconnect()

    asyncio.run(_run_login())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="landwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher and indexer cycles")
    subparsers.add_parser("index", help="Run one indexer cycle and exit")
    subparsers.add_parser("status", help="Browse tracked projects and sent alerts")
    subparsers.add_parser("notify-test", help="Send a sample alert through the configured notifier")
    subparsers.add_parser("login", help="Authorize the Telegram session for Saved Messages alerts")

    args = parser.parse_args(argv)
    if args.command == "index":
        _index()
        return
    if args.command == "status":
        _status()
        return
    if args.command == "notify-test":
        _notify_test()
        return
    if args.command == "login":
        _login()
        return
    _run()


if __name__ == "__main__":
    main()
