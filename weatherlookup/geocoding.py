"""
Location descriptors and geocoding.

A saved query's location is one of three shapes:
- {"type": "zip", "zip": "10001"}
- {"type": "q", "q": "Austin, TX"}
- {"type": "coords", "lat": 40.71, "lon": -74.0}

parse_location() validates the shape before anything touches the network;
Geocoder.resolve() turns a descriptor into a NormalizedLocation.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .errors import GeocodeError, NotFoundError, ProviderError, ValidationError
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

LOCATION_TYPES = ("zip", "coords", "q")

# ASCII only: \d would also accept other scripts' digits.
_US_ZIP_RE = re.compile(r"[0-9]{5}")


@dataclass(frozen=True)
class ZipLocation:
    zip: str


@dataclass(frozen=True)
class PlaceLocation:
    text: str


@dataclass(frozen=True)
class CoordsLocation:
    lat: float
    lon: float


LocationDescriptor = Union[ZipLocation, PlaceLocation, CoordsLocation]


@dataclass(frozen=True)
class NormalizedLocation:
    """
    Reconciled location stored on a query.
    Only lat/lon are guaranteed; the rest depends on which source resolved it.
    """
    lat: float
    lon: float
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedLocation":
        return cls(
            lat=data["lat"],
            lon=data["lon"],
            city=data.get("city"),
            state=data.get("state"),
            country=data.get("country"),
            zip=data.get("zip"),
        )


def is_valid_us_zip(value: Any) -> bool:
    """True for exactly five ASCII digits once surrounding whitespace is trimmed."""
    if value is None:
        return False
    return _US_ZIP_RE.fullmatch(str(value).strip()) is not None


def parse_coordinate(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_location(raw: Mapping[str, Any]) -> LocationDescriptor:
    """
    Validate a raw location mapping and return its typed descriptor.
    Raises ValidationError; never performs I/O.
    """
    kind = raw.get("type")
    if kind not in LOCATION_TYPES:
        raise ValidationError("location.type must be zip | coords | q")

    if kind == "zip":
        if not is_valid_us_zip(raw.get("zip")):
            raise ValidationError("Enter a valid 5-digit US ZIP.")
        return ZipLocation(zip=str(raw["zip"]).strip())

    if kind == "coords":
        lat = parse_coordinate(raw.get("lat"))
        lon = parse_coordinate(raw.get("lon"))
        if lat is None or lon is None:
            raise ValidationError("Invalid coordinates.")
        return CoordsLocation(lat=lat, lon=lon)

    text = str(raw.get("q") or "")
    if not text.strip():
        raise ValidationError("Search text required")
    return PlaceLocation(text=text)


class Geocoder:
    """Resolves location descriptors through the provider's geocoding endpoints."""

    def __init__(self, client: OpenWeatherClient):
        self.client = client

    async def resolve(self, location: LocationDescriptor) -> NormalizedLocation:
        if isinstance(location, ZipLocation):
            return await self._by_zip(location.zip)
        if isinstance(location, CoordsLocation):
            return await self._by_coords(location.lat, location.lon)
        if isinstance(location, PlaceLocation):
            return await self._by_query(location.text)
        raise ValidationError("location.type must be zip | coords | q")

    async def _by_zip(self, zip_code: str) -> NormalizedLocation:
        try:
            g = await self.client.zip_geocode(zip_code, "US")
        except ProviderError as e:
            logger.warning("ZIP lookup failed for %s: %s", zip_code, e)
            raise GeocodeError("Invalid ZIP") from e

        # ZIP endpoint does not include state
        return NormalizedLocation(
            city=g.get("name"),
            state=None,
            country=g.get("country"),
            lat=float(g["lat"]),
            lon=float(g["lon"]),
            zip=zip_code,
        )

    async def _by_query(self, text: str) -> NormalizedLocation:
        try:
            results = await self.client.direct_geocode(text, limit=1)
        except ProviderError as e:
            raise GeocodeError("Geocoding failed") from e

        if not results:
            raise GeocodeError("Location not found")

        g = results[0]
        return NormalizedLocation(
            city=g.get("name"),
            state=g.get("state"),
            country=g.get("country"),
            lat=float(g["lat"]),
            lon=float(g["lon"]),
            zip=None,
        )

    async def _by_coords(self, lat: float, lon: float) -> NormalizedLocation:
        # Coordinates are valid on their own; a failed reverse lookup only
        # costs us the human-friendly label.
        try:
            results = await self.client.reverse_geocode(lat, lon, limit=1)
        except ProviderError as e:
            logger.warning("Reverse geocoding failed for %s,%s: %s", lat, lon, e)
            results = []

        best = results[0] if results else {}
        return NormalizedLocation(
            city=best.get("name"),
            state=best.get("state"),
            country=best.get("country"),
            lat=lat,
            lon=lon,
            zip=None,
        )

    async def describe(self, lat: float, lon: float) -> Dict[str, Any]:
        """
        Reverse lookup for the browser's "use my location" button.
        Unlike _by_coords, an empty answer here is an error.
        """
        try:
            results = await self.client.reverse_geocode(lat, lon, limit=1)
        except ProviderError as e:
            raise ProviderError("Unable to get location", status_code=e.status_code) from e

        if not results:
            raise NotFoundError("Location not found")

        place = results[0]
        return {
            "city": place.get("name"),
            "state": place.get("state"),
            "country": place.get("country"),
            "zip": place.get("zip") or None,
        }
