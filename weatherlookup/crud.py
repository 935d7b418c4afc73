"""
CRUD functions for saved queries.

Why keep CRUD separate from main.py?
- main.py stays readable (routing + request/response)
- CRUD functions become easy to unit test
- Central place for validations (date range rules, location resolution, etc.)

Create and update both run: validate -> geocode -> aggregate -> persist,
strictly in that order (aggregation needs the resolved coordinates).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .aggregation import UNITS, ForecastAggregator, utc_window
from .errors import NotFoundError, PersistenceError, ValidationError
from .geocoding import Geocoder, NormalizedLocation, parse_location
from .schemas import DateRangeIn, LocationIn, QueryCreate, QueryUpdate
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

SOURCE = "openweathermap"


def parse_date_range(date_range: DateRangeIn) -> Tuple[date, date]:
    """
    Business rule validations for date ranges.
    """
    if not date_range.start or not date_range.end:
        raise ValidationError("Both start and end dates are required (YYYY-MM-DD).")
    try:
        start = date.fromisoformat(date_range.start.strip())
        end = date.fromisoformat(date_range.end.strip())
    except ValueError:
        raise ValidationError("Invalid date format (use YYYY-MM-DD).")
    if start > end:
        raise ValidationError("start must be on/before end.")
    return start, end


def validate_units(units: str) -> str:
    if units not in UNITS:
        raise ValidationError("units must be imperial | metric | standard")
    return units


def _location_input(location: LocationIn) -> Dict[str, Any]:
    return location.model_dump(exclude_none=True)


def _first(*values):
    """First value that is not None."""
    for v in values:
        if v is not None:
            return v
    return None


def merge_created_location(resolved: NormalizedLocation, from_forecast: NormalizedLocation) -> Dict[str, Any]:
    """Geocoder wins; the forecast only fills a missing city/country."""
    return NormalizedLocation(
        city=_first(resolved.city, from_forecast.city),
        state=resolved.state,
        country=_first(resolved.country, from_forecast.country),
        lat=resolved.lat,
        lon=resolved.lon,
        zip=resolved.zip,
    ).to_dict()


def merge_updated_location(
    resolved: Optional[NormalizedLocation],
    existing: Dict[str, Any],
    from_forecast: NormalizedLocation,
    lat: float,
    lon: float,
) -> Dict[str, Any]:
    """
    Per field: this update's resolution, else the stored value, else the
    forecast's own city/country. state/zip never come from the forecast.
    """
    return NormalizedLocation(
        city=_first(resolved and resolved.city, existing.get("city"), from_forecast.city),
        state=_first(resolved and resolved.state, existing.get("state")),
        country=_first(resolved and resolved.country, existing.get("country"), from_forecast.country),
        lat=lat,
        lon=lon,
        zip=_first(resolved and resolved.zip, existing.get("zip")),
    ).to_dict()


def _commit(db: Session, record: models.LocationQuery) -> models.LocationQuery:
    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Saving query failed: %s", e)
        raise PersistenceError(str(e)) from e
    return record


async def create_query(db: Session, payload: QueryCreate, client: OpenWeatherClient) -> models.LocationQuery:
    """
    CREATE saved query:
    - validate location, date range, units
    - resolve location (geocode)
    - aggregate the forecast over the window
    - store in DB
    """
    if payload.location is None or payload.date_range is None:
        raise ValidationError("location and dateRange are required")

    descriptor = parse_location(_location_input(payload.location))
    start, end = parse_date_range(payload.date_range)
    units = validate_units(payload.units)

    resolved = await Geocoder(client).resolve(descriptor)
    agg = await ForecastAggregator(client).aggregate(resolved.lat, resolved.lon, units, *utc_window(start, end))

    now = models.utcnow()
    record = models.LocationQuery(
        location_input=_location_input(payload.location),
        normalized_location=merge_created_location(resolved, agg.normalized_location),
        start_date=start,
        end_date=end,
        units=units,
        source=SOURCE,
        result=agg.result_dict(),
        notes=payload.notes,
        created_at=now,
        updated_at=now,
    )
    record = _commit(db, record)
    logger.info("Created query (%s days)", agg.summary.count, extra={"query_id": record.id})
    return record


def list_queries(db: Session) -> List[models.LocationQuery]:
    """All saved queries, newest first."""
    try:
        return (
            db.query(models.LocationQuery)
            .order_by(models.LocationQuery.created_at.desc())
            .all()
        )
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e


def get_query(db: Session, query_id: str) -> models.LocationQuery:
    """Fetch a single saved query by id."""
    try:
        record = db.get(models.LocationQuery, query_id)
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e
    if record is None:
        raise NotFoundError("Query not found")
    return record


async def update_query(db: Session, query_id: str, payload: QueryUpdate, client: OpenWeatherClient) -> models.LocationQuery:
    """
    UPDATE saved query:
    - re-resolve location if a new one was sent
    - replace the date range / notes if sent
    - always re-aggregate with the stored units, even for a notes-only update
    - merge the normalized location field by field
    """
    record = get_query(db, query_id)
    existing = dict(record.normalized_location or {})

    # Validate everything before the first provider call, as create does.
    descriptor = parse_location(_location_input(payload.location)) if payload.location is not None else None
    if payload.date_range is not None:
        start, end = parse_date_range(payload.date_range)
    else:
        start, end = record.start_date, record.end_date

    resolved: Optional[NormalizedLocation] = None
    if descriptor is not None:
        resolved = await Geocoder(client).resolve(descriptor)

    lat = resolved.lat if resolved is not None else existing.get("lat")
    lon = resolved.lon if resolved is not None else existing.get("lon")

    agg = await ForecastAggregator(client).aggregate(lat, lon, record.units, *utc_window(start, end))

    if payload.location is not None:
        record.location_input = _location_input(payload.location)
    record.start_date = start
    record.end_date = end
    if payload.notes is not None:
        record.notes = payload.notes
    record.normalized_location = merge_updated_location(resolved, existing, agg.normalized_location, lat, lon)
    record.result = agg.result_dict()
    record.updated_at = models.utcnow()

    record = _commit(db, record)
    logger.info("Updated query", extra={"query_id": record.id})
    return record


def delete_query(db: Session, query_id: str) -> None:
    """DELETE saved query."""
    record = get_query(db, query_id)
    try:
        db.delete(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(str(e)) from e
    logger.info("Deleted query", extra={"query_id": query_id})
