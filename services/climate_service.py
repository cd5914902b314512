"""
Climate Service — the inbound entry point used by the UI.

  1. Fetch (or reuse cached) POWER daily rows for the point, superseding any
     in-flight request for the same point
  2. Compute the probability report for the target date
  3. Render the CSV export and log the query
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import config
from models.errors import FetchAborted
from models.observation import DailyObservation, Location, QueryWindow
from models.report import ProbabilityReport
from services.export_builder import build_csv, export_filename
from services.logger import log_report
from services.probability_engine import Thresholds, compute_probabilities
from utils.power_client import PowerClient, build_power_params

logger = logging.getLogger("power_odds.service")


@dataclass(frozen=True)
class QueryResult:
    location: Location
    report: ProbabilityReport
    csv_text: str
    filename: str


class ClimateService:
    """Runs probability queries; only the newest request per point ever resolves."""

    def __init__(
        self,
        client: PowerClient,
        years_back: int = config.DEFAULT_YEARS_BACK,
        log_reports: bool = True,
    ) -> None:
        self._client = client
        self._years_back = years_back
        self._log_reports = log_reports
        # query key → cancel event of the request currently in flight
        self._inflight: dict[tuple[str, str, int], asyncio.Event] = {}

    def query_key(self, lat: float, lon: float) -> tuple[str, str, int]:
        """Same coordinate text the client puts in the request, plus the year span."""
        params = build_power_params(lat, lon, "", "")
        return (params["latitude"], params["longitude"], self._years_back)

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def cancel(self, lat: float, lon: float) -> bool:
        """Abort the in-flight request for this point. Returns True if one existed."""
        token = self._inflight.pop(self.query_key(lat, lon), None)
        if token is None:
            return False
        token.set()
        return True

    def cancel_all(self) -> None:
        for token in self._inflight.values():
            token.set()
        self._inflight.clear()

    async def fetch_observations(self, lat: float, lon: float) -> list[DailyObservation]:
        """Fetch the multi-year series, aborting any older request for the same point."""
        key = self.query_key(lat, lon)
        previous = self._inflight.get(key)
        if previous is not None:
            logger.info("Superseding in-flight POWER request for %s", key)
            previous.set()

        token = asyncio.Event()
        self._inflight[key] = token
        try:
            rows = await self._client.fetch_daily_range(
                lat, lon, years_back=self._years_back, cancel=token
            )
        finally:
            if self._inflight.get(key) is token:
                del self._inflight[key]

        if token.is_set():
            raise FetchAborted("POWER request superseded", details={"key": list(key)})
        return rows

    async def run_query(
        self,
        query: QueryWindow,
        name: str = "",
        thresholds: Thresholds | None = None,
    ) -> QueryResult:
        location = Location(lat=query.latitude, lng=query.longitude, name=name)
        rows = await self.fetch_observations(query.latitude, query.longitude)

        report = compute_probabilities(
            rows, query.target_month, query.target_day, query.window_days, thresholds
        )
        logger.info(
            "Query %s (%.4f, %.4f) %d/%d ±%dd: %d sample days",
            name or "-", query.latitude, query.longitude,
            query.target_month, query.target_day, query.window_days, report.sample_count,
        )
        if self._log_reports:
            log_report(location, report)

        return QueryResult(
            location=location,
            report=report,
            csv_text=build_csv(report, location),
            filename=export_filename(location, report),
        )
