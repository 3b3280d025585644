"""Static configuration for landwatch.

All user-editable settings (feeds, cycle timing, notifications, logging)
live in a single JSON file for quick edits without touching Python. Secrets
stay in the environment (.env).
"""

import json
import os

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

load_dotenv(os.path.join(PROJECT_ROOT, ".env"))

# Where to store the SQLite database. LANDWATCH_DB_PATH overrides it so
# containers can mount a volume without editing config.json.
DB_PATH = os.getenv("LANDWATCH_DB_PATH") or os.path.join(PROJECT_ROOT, "data", "landwatch.db")

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Feed endpoints. The counters feed drives the watcher, the search feed feeds
# both the indexer and the per-cycle metadata snapshot, and the validation
# endpoint is queried once per suspected transition.
_feeds = _CONFIG.get("feeds", {})
# COUNTERS_API_URL and SEARCH_API_URL in the environment take precedence.
COUNTERS_URL = os.getenv("COUNTERS_API_URL") or _feeds.get("counters_url", "")
SEARCH_URL = os.getenv("SEARCH_API_URL") or _feeds.get("search_url", "")
VALIDATION_URL = _feeds.get("validation_url", "https://sakani.sa/mainIntermediaryApi/v4/projects")
FEED_TIMEOUT_SECONDS = float(_feeds.get("timeout_seconds", 30))
VALIDATION_RATE_PER_SECOND = float(_feeds.get("validation_rate_per_second", 2.0))
# Raw payload dumps are for debugging feed changes; off unless a dir is set.
RAW_DUMP_DIR = _feeds.get("raw_dump_dir")
if RAW_DUMP_DIR and not os.path.isabs(RAW_DUMP_DIR):
    RAW_DUMP_DIR = os.path.join(PROJECT_ROOT, RAW_DUMP_DIR)

# Watcher cycle timing and verification limits.
# - PROJECT_TYPES: only alert for these project types (empty = all types)
_watcher = _CONFIG.get("watcher", {})
WATCHER_INTERVAL_SECONDS = float(_watcher.get("interval_seconds", 60))
VERIFY_CONCURRENCY = int(_watcher.get("verify_concurrency", 3))
PROJECT_TYPES = list(_watcher.get("project_types", []) or [])

# Indexer cycle refreshes bulk metadata on a slower timer.
_indexer = _CONFIG.get("indexer", {})
INDEXER_ENABLED = bool(_indexer.get("enabled", True))
INDEXER_INTERVAL_SECONDS = float(_indexer.get("interval_seconds", 900))

# Notification method switches adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "bot")
# Admin chat ids are only required when notification_method=bot.
# TELEGRAM_ADMIN_IDS (comma separated) takes precedence over config.json.
_env_admins = os.getenv("TELEGRAM_ADMIN_IDS", "")
if _env_admins.strip():
    ADMIN_CHAT_IDS = [part.strip() for part in _env_admins.split(",") if part.strip()]
else:
    ADMIN_CHAT_IDS = [str(chat_id) for chat_id in _notifications.get("admin_chat_ids", []) or []]
NOTIFY_OPERATOR_ON_ERROR = bool(_notifications.get("notify_operator_on_error", True))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
