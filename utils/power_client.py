from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import aiohttp

import config
from models.errors import FetchAborted, FetchError, ValidationError
from models.observation import DailyObservation
from utils.cache import TTLCache

logger = logging.getLogger("power_odds.power")

_DATE_KEY_RE = re.compile(r"^\d{8}$")

# POWER variable → DailyObservation field
_FIELD_BY_PARAMETER = {
    "T2M": "temperature_c",
    "RH2M": "relative_humidity_pct",
    "WS2M": "wind_speed_mps",
    "PRECTOTCORR": "precipitation_mm_per_day",
}


# ── Pure helpers ──────────────────────────────────────────────────────────────


def clean_value(raw: Any) -> float | None:
    """Map a raw POWER value to a finite float, or None for fill values and junk."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value in config.MISSING_VALUE_SENTINELS:
        return None
    return value


def build_power_params(
    lat: float,
    lon: float,
    start: str,
    end: str,
    parameters: list[str] | None = None,
    community: str | None = None,
) -> dict[str, str]:
    """Query string for the daily point endpoint. Always UTC, always JSON."""
    return {
        "parameters": ",".join(parameters or config.POWER_PARAMETERS),
        "community": community or config.POWER_COMMUNITY,
        "latitude": str(lat),
        "longitude": str(lon),
        "start": start,
        "end": end,
        "format": "JSON",
        "time-standard": "UTC",
        "header": "true",
    }


def build_power_url(params: dict[str, str]) -> str:
    return f"{config.POWER_BASE_URL}?{urlencode(params)}"


def default_date_range(years_back: int, today: date | None = None) -> tuple[str, str]:
    """(Jan 1 of the first year, yesterday) as YYYYMMDD strings."""
    if isinstance(years_back, bool) or not isinstance(years_back, int) or years_back < 1:
        raise ValidationError(f"years_back must be >= 1, got {years_back!r}", field="years_back")
    today = today or datetime.now(timezone.utc).date()
    yesterday = today - timedelta(days=1)
    return f"{yesterday.year - years_back + 1}0101", yesterday.strftime("%Y%m%d")


def parse_power_response(data: Any, url: str | None = None) -> list[DailyObservation]:
    """
    Parse the POWER JSON body into observations sorted by date.

    Shape: {"properties": {"parameter": {"T2M": {"20240101": 27.1, ...}, ...}}}.
    Days on which every variable is a fill value are dropped.
    """
    if not isinstance(data, dict):
        raise FetchError("POWER payload is not a JSON object", url=url)
    properties = data.get("properties")
    if not isinstance(properties, dict) or not isinstance(properties.get("parameter"), dict):
        raise FetchError("POWER payload has no properties.parameter block", url=url)

    by_date: dict[str, dict[str, float | None]] = {}
    for name, series in properties["parameter"].items():
        field_name = _FIELD_BY_PARAMETER.get(name)
        if field_name is None:
            logger.debug("Ignoring unrequested POWER variable %s", name)
            continue
        if not isinstance(series, dict):
            raise FetchError(f"POWER variable {name} is not a date map", url=url)
        for date_key, raw in series.items():
            if not _DATE_KEY_RE.match(str(date_key)):
                raise FetchError(f"POWER variable {name} has bad date key {date_key!r}", url=url)
            by_date.setdefault(str(date_key), {})[field_name] = clean_value(raw)

    observations = []
    for date_key in sorted(by_date):
        values = by_date[date_key]
        if all(v is None for v in values.values()):
            continue
        try:
            observations.append(DailyObservation(date=date_key, **values))
        except ValidationError as exc:
            raise FetchError(f"POWER returned an impossible date {date_key}", url=url) from exc
    return observations


# ── Client ────────────────────────────────────────────────────────────────────


class PowerClient:
    """Async client for the NASA POWER daily point API, with a TTL cache."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        cache: TTLCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._cache = cache if cache is not None else TTLCache(config.POWER_CACHE_TTL_SECONDS)
        self._timeout = timeout if timeout is not None else config.POWER_REQUEST_TIMEOUT_SECONDS

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": config.USER_AGENT}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def fetch_daily(
        self,
        lat: float,
        lon: float,
        start: str,
        end: str,
        cancel: asyncio.Event | None = None,
    ) -> list[DailyObservation]:
        """Fetch one explicit YYYYMMDD..YYYYMMDD span."""
        params = build_power_params(lat, lon, start, end)
        return await self._fetch_once(params, cancel)

    async def fetch_daily_range(
        self,
        lat: float,
        lon: float,
        years_back: int = config.DEFAULT_YEARS_BACK,
        cancel: asyncio.Event | None = None,
        today: date | None = None,
    ) -> list[DailyObservation]:
        """Fetch the last *years_back* calendar years up to yesterday in one request."""
        start, end = default_date_range(years_back, today)
        return await self.fetch_daily(lat, lon, start, end, cancel=cancel)

    async def _fetch_once(
        self, params: dict[str, str], cancel: asyncio.Event | None
    ) -> list[DailyObservation]:
        url = build_power_url(params)
        cached = self._cache.get(url)
        if cached is not None:
            logger.debug("POWER cache hit: %s", url)
            return list(cached)

        if cancel is not None and cancel.is_set():
            raise FetchAborted("POWER request aborted before it was sent", details={"url": url})

        data = await self._run_cancellable(self._request(params, url), cancel, url)
        observations = parse_power_response(data, url=url)
        self._cache.set(url, tuple(observations))
        logger.info(
            "POWER OK (%s, %s) [%s..%s]: %d days",
            params["latitude"], params["longitude"], params["start"], params["end"],
            len(observations),
        )
        return observations

    async def _request(self, params: dict[str, str], url: str) -> Any:
        session = await self._ensure_session()
        try:
            async with session.get(
                config.POWER_BASE_URL,
                params=params,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning("POWER request failed: HTTP %d", resp.status)
                    raise FetchError(f"POWER HTTP {resp.status}", status=resp.status, url=url)
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("POWER request error: %s", exc)
            raise FetchError(f"POWER request failed: {exc or type(exc).__name__}", url=url) from exc
        except ValueError as exc:
            raise FetchError(f"POWER returned invalid JSON: {exc}", url=url) from exc

    @staticmethod
    async def _run_cancellable(coro, cancel: asyncio.Event | None, url: str) -> Any:
        """Await *coro* unless *cancel* fires first; then abort it and raise FetchAborted."""
        if cancel is None:
            return await coro

        request = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()

        if cancel.is_set():
            if request.done() and not request.cancelled():
                # Consume the outcome so a late failure is not reported as unretrieved
                request.exception()
            logger.info("POWER request aborted: %s", url)
            raise FetchAborted("POWER request aborted", details={"url": url})
        return request.result()
