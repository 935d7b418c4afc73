"""
Weather provider client.

We intentionally separate API logic from FastAPI endpoints:
- easier to test in isolation (inject an httpx.AsyncClient with a mock transport)
- cleaner main.py
- one place to add timeout/retry policy later

The client only moves JSON; interpreting failures (which message the
user sees) is left to geocoding.py / aggregation.py / conditions.py.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ProviderError

logger = logging.getLogger(__name__)

GENERIC_UPSTREAM_MESSAGE = "Weather service unavailable"


def provider_message(response: httpx.Response, default: str = GENERIC_UPSTREAM_MESSAGE) -> str:
    """
    Extract OpenWeather's error message from a failed response body.

    OpenWeather answers errors with {"cod": 401, "message": "Invalid API key"};
    anything unparseable falls back to the generic message.
    """
    try:
        body = json.loads(response.text or "{}")
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


class OpenWeatherClient:
    """
    OpenWeatherMap wrapper.

    Endpoints used:
    - Geocoding:
        /geo/1.0/reverse?lat=...&lon=...&limit=1&appid=KEY
        /geo/1.0/direct?q=...&limit=1&appid=KEY
        /geo/1.0/zip?zip=12345,US&appid=KEY
    - Current weather:
        /data/2.5/weather?lat=...&lon=...&units=imperial&appid=KEY
    - 5-day forecast (3-hour increments):
        /data/2.5/forecast?lat=...&lon=...&units=imperial&appid=KEY
    """

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 10.0,
        base: str = "https://api.openweathermap.org",
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.base = base.rstrip("/")
        self._http = http

    async def _get(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        params = {**params, "appid": self.api_key}
        url = f"{self.base}{path}"
        logger.debug("GET", extra={"upstream": path})
        try:
            if self._http is not None:
                r = await self._http.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    r = await client.get(url, params=params)
        except httpx.HTTPError as e:
            # timeouts, refused connections, protocol errors
            logger.warning("Provider call failed: %s", type(e).__name__, extra={"upstream": path})
            raise ProviderError(GENERIC_UPSTREAM_MESSAGE) from e
        if r.status_code != 200:
            logger.warning("Provider call failed", extra={"upstream": path, "status": r.status_code})
        return r

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        r = await self._get(path, params)
        if r.status_code != 200:
            raise ProviderError(provider_message(r), status_code=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            logger.warning("Provider returned a non-JSON body", extra={"upstream": path, "status": r.status_code})
            raise ProviderError(GENERIC_UPSTREAM_MESSAGE, status_code=r.status_code) from e

    # -------------------------
    # Geocoding
    # -------------------------

    async def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> List[Dict[str, Any]]:
        """lat/lon -> list of {name, state?, country, lat, lon}."""
        return await self._get_json("/geo/1.0/reverse", {"lat": lat, "lon": lon, "limit": limit}) or []

    async def direct_geocode(self, query: str, limit: int = 1) -> List[Dict[str, Any]]:
        """Free-text place -> list of {name, state?, country, lat, lon}."""
        return await self._get_json("/geo/1.0/direct", {"q": query, "limit": limit}) or []

    async def zip_geocode(self, zip_code: str, country: str = "US") -> Dict[str, Any]:
        """Postal code -> single {zip, name, lat, lon, country}."""
        return await self._get_json("/geo/1.0/zip", {"zip": f"{zip_code},{country}"})

    # -------------------------
    # Weather
    # -------------------------

    @staticmethod
    def _where(lat: Optional[float], lon: Optional[float], zip_code: Optional[str]) -> Dict[str, Any]:
        if zip_code:
            return {"zip": f"{zip_code},US"}
        return {"lat": lat, "lon": lon}

    async def current_weather(
        self,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        units: str = "imperial",
        zip_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Retrieves current weather conditions for a lat/lon or a US ZIP.
        """
        params = {**self._where(lat, lon, zip_code), "units": units}
        return await self._get_json("/data/2.5/weather", params)

    async def forecast_5day_3h(
        self,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        units: str = "imperial",
        zip_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Retrieves the 5-day forecast in 3-hour increments.
        aggregation.py turns this into one summary per day.
        """
        params = {**self._where(lat, lon, zip_code), "units": units}
        return await self._get_json("/data/2.5/forecast", params)
