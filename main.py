#!/usr/bin/env python3
"""
POWER ODDS — historical odds of extreme weather for a place and calendar date.

Pulls ~10 years of NASA POWER daily data for a point, counts how often the
days around the target date were very hot / cold / wet / windy / uncomfortable,
prints the result and writes the CSV and spreadsheet exports.

Run:
    python main.py LAT LON MONTH DAY [WINDOW_DAYS] [NAME]
    python main.py SIBU MONTH DAY [WINDOW_DAYS]
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import aiohttp

import config
from models.errors import PowerOddsError
from models.observation import QueryWindow
from services.climate_service import ClimateService
from services.export_builder import build_xlsx, xlsx_filename
from services.probability_engine import DEFAULT_CONDITIONS
from utils.power_client import PowerClient

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("power_odds")

USAGE = __doc__.split("Run:")[1].rstrip()


def parse_args(argv: list[str]) -> tuple[QueryWindow, str]:
    """Turn command-line words into a validated query and a display name."""
    if argv and config.location_from_text(argv[0]) is not None:
        loc = config.location_from_text(argv[0])
        lat, lon, name = loc["lat"], loc["lon"], loc["name"]
        rest = argv[1:]
        if len(rest) < 2:
            raise ValueError("expected MONTH DAY after the location key")
    else:
        if len(argv) < 4:
            raise ValueError("expected LAT LON MONTH DAY")
        lat, lon = float(argv[0]), float(argv[1])
        rest = argv[2:]
        name = " ".join(argv[5:]) if len(argv) > 5 else ""

    month, day = int(rest[0]), int(rest[1])
    window = int(rest[2]) if len(rest) > 2 else config.DEFAULT_WINDOW_DAYS
    return QueryWindow(lat, lon, month, day, window), name


async def run(query: QueryWindow, name: str) -> int:
    async with aiohttp.ClientSession(headers={"User-Agent": config.USER_AGENT}) as session:
        service = ClimateService(PowerClient(session=session))
        result = await service.run_query(query, name=name)

    report = result.report
    print(f"\n{'=' * 60}")
    print(f"  {name or 'Location'} ({query.latitude}, {query.longitude})")
    print(f"  {query.target_month}/{query.target_day} ± {query.window_days} days — "
          f"{report.sample_count} sample days")
    print(f"{'=' * 60}")
    for key, condition in DEFAULT_CONDITIONS.items():
        res = report.condition(key)
        print(f"  {condition.label:<20s} {res.percentage:>3d}%  "
              f"({res.hits}/{res.sample_size}, {condition.description})")

    path = Path(result.filename)
    path.write_text(result.csv_text, encoding="utf-8")
    workbook = Path(xlsx_filename(result.location, report))
    workbook.write_bytes(build_xlsx(report, result.location))
    print(f"\n  CSV written to {path}\n  Workbook written to {workbook}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        query, name = parse_args(argv)
    except (ValueError, IndexError) as exc:
        print(f"Invalid arguments: {exc}\nUsage:{USAGE}")
        return 2

    try:
        return asyncio.run(run(query, name))
    except PowerOddsError as exc:
        logger.error("%s error: %s", exc.kind, exc.message)
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nShutdown requested via Ctrl+C")
        sys.exit(0)
