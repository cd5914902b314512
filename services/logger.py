from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import config
from models.observation import Location
from models.report import ProbabilityReport

logger = logging.getLogger("power_odds.logger")


def _ensure_dir(subdir: str) -> Path:
    path = Path(config.LOG_DIR) / subdir
    path.mkdir(parents=True, exist_ok=True)
    return path


def _today_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def _append_jsonl(subdir: str, record: dict[str, Any]) -> None:
    """Append a single JSON record to today's JSONL file in the given subdirectory."""
    try:
        filepath = _ensure_dir(subdir) / f"{_today_str()}.jsonl"
        with open(filepath, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")
    except OSError as exc:
        logger.error("Failed to write %s log: %s", subdir, exc)


def log_report(
    location: Location,
    report: ProbabilityReport,
    timestamp: datetime | None = None,
) -> None:
    """Log a computed probability report to <LOG_DIR>/reports/."""
    ts = timestamp or datetime.now(timezone.utc)
    record = {
        "timestamp": ts.isoformat(),
        "name": location.name,
        "lat": location.lat,
        "lng": location.lng,
        "month": report.target_month,
        "day": report.target_day,
        "window_days": report.window_days,
        "sample_count": report.sample_count,
        "percentages": report.percentages,
    }
    _append_jsonl("reports", record)
