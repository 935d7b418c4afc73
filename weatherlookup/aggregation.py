"""
Forecast aggregation.

OpenWeather's forecast returns ~40 data points (3-hour steps over 5 days).
Saved queries store one summary per day for a caller-chosen date window:

- window is [start 00:00:00Z, end 23:59:59Z], shifted into the provider's
  sample timeline by subtracting the city's UTC offset
- samples inside the shifted window are grouped by *local* calendar date
- each day gets hi/lo/avg plus the description/icon of the sample
  closest to local noon

aggregate_forecast() is pure (payload in, summary out) so both the create
and update flows share it and tests need no network. ForecastAggregator is
the thin wrapper that fetches the payload first.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import AggregationError, ProviderError
from .geocoding import NormalizedLocation
from .weather_clients import OpenWeatherClient

UNITS = ("imperial", "metric", "standard")

DEFAULT_DESCRIPTION = "—"
DEFAULT_ICON = "01d"

NO_FORECAST_DATA = "No forecast data"
OUTSIDE_WINDOW = "Requested date range is outside the 5-day forecast window."
NO_POINTS_IN_RANGE = "No forecast points in that date range (try adjusting by a day)."
NO_DAILY_AGGREGATES = "No daily aggregates for that range."


@dataclass(frozen=True)
class DailyForecast:
    date: str
    hi: int
    lo: int
    avg: int
    description: str
    icon: str


@dataclass(frozen=True)
class DaySummary:
    """min of daily lows, max of daily highs, mean of daily avgs, number of days."""
    min: int
    max: int
    avg: int
    count: int


@dataclass(frozen=True)
class ForecastAggregate:
    summary: DaySummary
    series: List[DailyForecast] = field(default_factory=list)
    normalized_location: Optional[NormalizedLocation] = None

    def result_dict(self) -> Dict[str, Any]:
        """The {summary, series} blob stored on a saved query."""
        return {
            "summary": asdict(self.summary),
            "series": [asdict(d) for d in self.series],
        }


# -------------------------
# Numeric helpers
# -------------------------

def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(Decimal(repr(float(value))).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def sample_temp(sample: Mapping[str, Any]) -> float:
    """Point temperature, 0 when missing."""
    temp = (sample.get("main") or {}).get("temp")
    return temp if temp is not None else 0


def sample_high(sample: Mapping[str, Any]) -> float:
    """temp_max, falling back to temp, then 0."""
    high = (sample.get("main") or {}).get("temp_max")
    return high if _is_finite_number(high) else sample_temp(sample)


def sample_low(sample: Mapping[str, Any]) -> float:
    """temp_min, falling back to temp, then 0."""
    low = (sample.get("main") or {}).get("temp_min")
    return low if _is_finite_number(low) else sample_temp(sample)


def sample_weather(sample: Mapping[str, Any]) -> Tuple[str, str]:
    """(description, icon) of the first weather entry, with display defaults."""
    w = (sample.get("weather") or [{}])[0] or {}
    description = w.get("description")
    icon = w.get("icon")
    return (
        description if description is not None else DEFAULT_DESCRIPTION,
        icon if icon is not None else DEFAULT_ICON,
    )


def closest_to_noon(entries: Sequence[Tuple[Mapping[str, Any], datetime]]) -> Mapping[str, Any]:
    """
    Representative sample: the one whose wall-clock hour is nearest 12:00.
    min() keeps the first of equally close samples.
    """
    sample, _ = min(entries, key=lambda pair: abs(12 - pair[1].hour))
    return sample


# -------------------------
# Window helpers
# -------------------------

def utc_window(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive UTC window covering whole calendar days."""
    return (
        datetime.combine(start, time(0, 0, 0), tzinfo=timezone.utc),
        datetime.combine(end, time(23, 59, 59), tzinfo=timezone.utc),
    )


def _local_time(dt_utc: int, offset_s: int) -> datetime:
    # Shifted epoch read back as UTC gives the city's wall clock.
    return datetime.fromtimestamp(dt_utc + offset_s, tz=timezone.utc)


# -------------------------
# Aggregation
# -------------------------

def aggregate_forecast(
    forecast: Mapping[str, Any],
    start_utc: datetime,
    end_utc: datetime,
    lat: float,
    lon: float,
) -> ForecastAggregate:
    """
    Summarize a raw /data/2.5/forecast payload over [start_utc, end_utc].

    Raises AggregationError with a message describing why no summary
    could be produced.
    """
    items = forecast.get("list")
    samples: List[Mapping[str, Any]] = items if isinstance(items, list) else []
    if not samples:
        raise AggregationError(NO_FORECAST_DATA)

    city = forecast.get("city") or {}
    offset_s = int(city.get("timezone") or 0)

    # Local-midnight window -> provider epoch timeline: subtract the offset.
    window_start = int(start_utc.timestamp()) - offset_s
    window_end = int(end_utc.timestamp()) - offset_s

    first_dt = int(samples[0]["dt"])
    last_dt = int(samples[-1]["dt"])
    if window_end < first_dt or window_start > last_dt:
        raise AggregationError(OUTSIDE_WINDOW)

    in_range = [s for s in samples if window_start <= int(s["dt"]) <= window_end]
    if not in_range:
        raise AggregationError(NO_POINTS_IN_RANGE)

    by_local_date: Dict[str, List[Tuple[Mapping[str, Any], datetime]]] = {}
    for s in in_range:
        local = _local_time(int(s["dt"]), offset_s)
        by_local_date.setdefault(local.date().isoformat(), []).append((s, local))

    series: List[DailyForecast] = []
    for day in sorted(by_local_date):
        entries = by_local_date[day]
        mids = [sample_temp(s) for s, _ in entries]
        description, icon = sample_weather(closest_to_noon(entries))
        series.append(DailyForecast(
            date=day,
            hi=round_half_away(max(sample_high(s) for s, _ in entries)),
            lo=round_half_away(min(sample_low(s) for s, _ in entries)),
            avg=round_half_away(sum(mids) / len(mids)),
            description=description,
            icon=icon,
        ))

    if not series:
        raise AggregationError(NO_DAILY_AGGREGATES)

    summary = DaySummary(
        min=min(d.lo for d in series),
        max=max(d.hi for d in series),
        avg=round_half_away(sum(d.avg for d in series) / len(series)),
        count=len(series),
    )

    from_forecast = NormalizedLocation(
        city=city.get("name"),
        state=None,
        country=city.get("country"),
        lat=lat,
        lon=lon,
        zip=None,
    )
    return ForecastAggregate(summary=summary, series=series, normalized_location=from_forecast)


class ForecastAggregator:
    """Fetches the 5-day forecast and hands it to aggregate_forecast()."""

    def __init__(self, client: OpenWeatherClient):
        self.client = client

    async def aggregate(
        self,
        lat: float,
        lon: float,
        units: str,
        start_utc: datetime,
        end_utc: datetime,
    ) -> ForecastAggregate:
        try:
            forecast = await self.client.forecast_5day_3h(lat, lon, units=units)
        except ProviderError as e:
            raise AggregationError(str(e)) from e
        return aggregate_forecast(forecast, start_utc, end_utc, lat, lon)
