"""
Quick-lookup weather (nothing is persisted here).

- normalize_now(): current observation -> display-ready dict
- normalize_forecast_preview(): forecast list -> up to 5 daily cards, bucketed
  by raw UTC date (unlike aggregation.py, which uses the city's local date)
- lookup_current(): fetches both concurrently and normalizes them
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .aggregation import (
    DEFAULT_DESCRIPTION,
    DEFAULT_ICON,
    closest_to_noon,
    round_half_away,
    sample_high,
    sample_low,
    sample_weather,
)
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

PREVIEW_DAYS = 5


@dataclass(frozen=True)
class CurrentConditions:
    city: Optional[str]
    temp: int
    feels_like: int
    description: str
    icon: str
    wind_speed: int
    humidity: float
    time: str


def _iso_utc(epoch_s: int) -> str:
    return datetime.fromtimestamp(epoch_s, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_now(raw: Mapping[str, Any]) -> CurrentConditions:
    main = raw.get("main") or {}
    wind = raw.get("wind") or {}
    w = (raw.get("weather") or [{}])[0] or {}
    wind_speed = wind.get("speed")
    humidity = main.get("humidity")
    return CurrentConditions(
        city=raw.get("name"),
        temp=round_half_away(main["temp"]),
        feels_like=round_half_away(main["feels_like"]),
        description=w.get("description") if w.get("description") is not None else DEFAULT_DESCRIPTION,
        icon=w.get("icon") if w.get("icon") is not None else DEFAULT_ICON,
        wind_speed=round_half_away(wind_speed if wind_speed is not None else 0),
        humidity=humidity if humidity is not None else 0,
        time=_iso_utc(int(raw["dt"])),
    )


def normalize_forecast_preview(items: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    First PREVIEW_DAYS UTC dates, in the order the feed presents them.
    The representative sample is the one closest to 12:00 UTC.
    """
    by_date: Dict[str, List[Tuple[Mapping[str, Any], datetime]]] = {}
    for item in items or []:
        when = datetime.fromtimestamp(int(item["dt"]), tz=timezone.utc)
        by_date.setdefault(when.date().isoformat(), []).append((item, when))

    days: List[Dict[str, Any]] = []
    for day in list(by_date)[:PREVIEW_DAYS]:
        entries = by_date[day]
        description, icon = sample_weather(closest_to_noon(entries))
        days.append({
            "date": day,
            "hi": round_half_away(max(sample_high(x) for x, _ in entries)),
            "lo": round_half_away(min(sample_low(x) for x, _ in entries)),
            "description": description,
            "icon": icon,
        })
    return days


async def lookup_current(
    client: OpenWeatherClient,
    zip_code: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    units: str = "imperial",
) -> Dict[str, Any]:
    """
    Current conditions + forecast preview for a ZIP or coordinates.
    Both calls run concurrently; either ProviderError fails the lookup.
    """
    now_raw, fc_raw = await asyncio.gather(
        client.current_weather(lat, lon, units=units, zip_code=zip_code),
        client.forecast_5day_3h(lat, lon, units=units, zip_code=zip_code),
    )
    logger.debug("Current lookup for %s", zip_code or f"{lat},{lon}")
    return {
        "now": asdict(normalize_now(now_raw)),
        "forecast": normalize_forecast_preview(fc_raw.get("list") or []),
        "source": "openweathermap",
    }
