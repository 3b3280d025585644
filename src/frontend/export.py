"""JSON/CSV export for the status panel tables."""

from __future__ import annotations

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from .constants import EXPORTS_DIR


def export_rows(rows: list[dict[str, Any]], name: str, fmt: str, directory: Path = EXPORTS_DIR) -> Path:
    """Write rows to <directory>/<name>-<timestamp>.<fmt> and return the path."""

    if fmt not in {"json", "csv"}:
        raise ValueError(f"Unsupported export format: {fmt}")
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    path = directory / f"{name}-{timestamp}.{fmt}"
    if fmt == "json":
        path.write_text(json.dumps(rows, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
        return path

    # Rows without metadata carry fewer keys; the header is the ordered union.
    fieldnames = list(dict.fromkeys(key for row in rows for key in row))
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path
