"""
FastAPI entrypoint.

This file focuses on:
- routing
- request/response handling
- wiring together DB + provider client
- translating WeatherError subclasses into HTTP status codes
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import models
from .conditions import lookup_current
from .crud import create_query, delete_query, get_query, list_queries, update_query
from .db import Base, engine, get_db
from .errors import (
    AggregationError,
    ConfigurationError,
    GeocodeError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    ValidationError,
    WeatherError,
)
from .geocoding import Geocoder, is_valid_us_zip, parse_coordinate
from .log_setup import setup_logger
from .schemas import QueryCreate, QueryOut, QueryUpdate
from .settings import settings
from .weather_clients import OpenWeatherClient

logger = setup_logger(settings)

# Create tables automatically (no migrations for a single table).
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name)

STATUS_BY_ERROR = {
    ValidationError: 400,
    GeocodeError: 400,
    AggregationError: 400,
    NotFoundError: 404,
    ProviderError: 502,
    ConfigurationError: 500,
    PersistenceError: 500,
}


def status_for(error: WeatherError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


@app.exception_handler(WeatherError)
async def weather_error_handler(request: Request, exc: WeatherError):
    status = status_for(exc)
    if status >= 500:
        logger.warning(
            "Request failed: %s", exc,
            extra={"method": request.method, "route": request.url.path, "status": status},
        )
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def get_weather_client() -> OpenWeatherClient:
    """Provider client; fails with ConfigurationError when no key is set."""
    return OpenWeatherClient(
        settings.require_api_key(),
        timeout_s=settings.http_timeout_s,
        base=settings.openweather_base_url,
    )


ClientFactory = Callable[[], OpenWeatherClient]


def get_client_factory() -> ClientFactory:
    """
    Deferred client for the lookup routes: they validate query params
    first, so bad input is a 400 even when the key is missing.
    """
    return get_weather_client


def query_to_dict(model: models.LocationQuery) -> dict:
    """Convert ORM model -> dict for JSON responses."""
    return {
        "id": model.id,
        "location_input": model.location_input,
        "normalized_location": model.normalized_location,
        "start_date": model.start_date,
        "end_date": model.end_date,
        "units": model.units,
        "source": model.source,
        "result": model.result,
        "notes": model.notes,
        "created_at": model.created_at,
        "updated_at": model.updated_at,
    }


# -------------------------
# Quick lookup APIs
# -------------------------

@app.get("/api/weather")
async def api_weather(
    zip: Optional[str] = None,
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    make_client: ClientFactory = Depends(get_client_factory),
):
    """
    Current conditions + 5-day preview by US ZIP or by coordinates.
    """
    zip_code = (zip or "").strip()
    if zip_code:
        if not is_valid_us_zip(zip_code):
            raise ValidationError("Enter a valid 5-digit US ZIP.")
        return await lookup_current(make_client(), zip_code=zip_code)

    if lat and lon:
        la, lo = parse_coordinate(lat), parse_coordinate(lon)
        if la is None or lo is None:
            raise ValidationError("Invalid coordinates.")
        return await lookup_current(make_client(), lat=la, lon=lo)

    raise ValidationError("Either ZIP code or coordinates required.")


@app.get("/api/location")
async def api_location(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    make_client: ClientFactory = Depends(get_client_factory),
):
    """Reverse-geocode browser coordinates to {city, state, country, zip}."""
    if not lat or not lon:
        raise ValidationError("Missing latitude or longitude")
    la, lo = parse_coordinate(lat), parse_coordinate(lon)
    if la is None or lo is None:
        raise ValidationError("Invalid coordinates.")
    return await Geocoder(make_client()).describe(la, lo)


# -------------------------
# Saved query CRUD APIs
# -------------------------

@app.post("/api/queries", response_model=QueryOut)
async def api_create_query(
    payload: QueryCreate,
    db: Session = Depends(get_db),
    client: OpenWeatherClient = Depends(get_weather_client),
):
    """Create a saved date-range query."""
    rec = await create_query(db, payload, client)
    return query_to_dict(rec)


@app.get("/api/queries", response_model=list[QueryOut])
def api_list_queries(db: Session = Depends(get_db)):
    """List saved queries, newest first."""
    return [query_to_dict(r) for r in list_queries(db)]


@app.get("/api/queries/{query_id}", response_model=QueryOut)
def api_get_query(query_id: str, db: Session = Depends(get_db)):
    """Fetch a single saved query."""
    return query_to_dict(get_query(db, query_id))


@app.patch("/api/queries/{query_id}", response_model=QueryOut)
async def api_update_query(
    query_id: str,
    payload: QueryUpdate,
    db: Session = Depends(get_db),
    client: OpenWeatherClient = Depends(get_weather_client),
):
    """Update location / date range / notes, re-aggregate, and persist."""
    updated = await update_query(db, query_id, payload, client)
    return query_to_dict(updated)


@app.delete("/api/queries/{query_id}")
def api_delete_query(query_id: str, db: Session = Depends(get_db)):
    """Delete a saved query."""
    delete_query(db, query_id)
    return {"ok": True}
