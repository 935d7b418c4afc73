# Shared fixtures: a fake OpenWeather provider behind httpx.MockTransport,
# payload builders, and an in-memory SQLite session.

import asyncio
import os

# Must be set before weatherlookup.settings is imported anywhere.
os.environ["SQLITE_PATH"] = ":memory:"

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

from weatherlookup.db import Base, make_engine
from weatherlookup.weather_clients import OpenWeatherClient

Route = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]

FORECAST_PATH = "/data/2.5/forecast"
CURRENT_PATH = "/data/2.5/weather"
ZIP_PATH = "/geo/1.0/zip"
DIRECT_PATH = "/geo/1.0/direct"
REVERSE_PATH = "/geo/1.0/reverse"


class FakeProvider:
    """Routes requests by URL path and records every call."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def set(self, path: str, status: int, body: Any) -> None:
        self.routes[path] = (status, body)

    def calls(self, path: Optional[str] = None) -> List[httpx.Request]:
        if path is None:
            return list(self.requests)
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"cod": "404", "message": "not stubbed"})
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def client(provider: FakeProvider) -> Iterator[OpenWeatherClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))
    yield OpenWeatherClient("test-key", http=http)
    asyncio.run(http.aclose())


@pytest.fixture
def db():
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def epoch(iso: str) -> int:
    """'2024-03-01T12:00' (UTC) -> epoch seconds."""
    return int(datetime.fromisoformat(iso).replace(tzinfo=timezone.utc).timestamp())


def sample(
    iso: str,
    temp: Optional[float],
    temp_min: Optional[float] = None,
    temp_max: Optional[float] = None,
    description: Optional[str] = "clear sky",
    icon: Optional[str] = "01d",
) -> Dict[str, Any]:
    """One 3-hour forecast step in OpenWeather's shape."""
    main: Dict[str, Any] = {}
    if temp is not None:
        main["temp"] = temp
    main["temp_min"] = temp if temp_min is None else temp_min
    main["temp_max"] = temp if temp_max is None else temp_max
    weather: Dict[str, Any] = {}
    if description is not None:
        weather["description"] = description
    if icon is not None:
        weather["icon"] = icon
    return {"dt": epoch(iso), "main": main, "weather": [weather]}


def forecast_payload(
    samples: List[Dict[str, Any]],
    offset_s: int = 0,
    city: str = "Testville",
    country: str = "US",
) -> Dict[str, Any]:
    return {
        "cod": "200",
        "city": {"name": city, "country": country, "timezone": offset_s},
        "list": samples,
    }


def three_hourly(day: str, temps: List[float], start_hour: int = 0) -> List[Dict[str, Any]]:
    """Consecutive 3-hour samples for a UTC day."""
    return [
        sample(f"{day}T{start_hour + 3 * i:02d}:00", t)
        for i, t in enumerate(temps)
    ]


def march_forecast(offset_s: int = 0, city: str = "Testville", country: str = "US") -> Dict[str, Any]:
    """2024-03-01 .. 2024-03-05, eight samples a day."""
    samples: List[Dict[str, Any]] = []
    for n, day in enumerate(["2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04", "2024-03-05"]):
        samples += three_hourly(day, [float(10 + n + i) for i in range(8)])
    return forecast_payload(samples, offset_s=offset_s, city=city, country=country)


def raising(exc_type: type) -> Callable[[httpx.Request], httpx.Response]:
    """Route that fails at the transport layer, e.g. httpx.ConnectTimeout."""

    def route(request: httpx.Request) -> httpx.Response:
        raise exc_type("timed out", request=request)

    return route
