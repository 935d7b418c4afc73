"""
ORM models.

We store:
- the location exactly as the user submitted it (zip / q / coords)
- the reconciled location (city/state/country/lat/lon/zip)
- requested date range and units
- the aggregated forecast ({summary, series}) as JSON
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationQuery(Base):
    __tablename__ = "weather_queries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)

    # What the user submitted, e.g. {"type": "zip", "zip": "10001"}
    location_input: Mapped[Dict[str, Any]] = mapped_column(JSON)

    # {"city", "state", "country", "lat", "lon", "zip"}
    normalized_location: Mapped[Dict[str, Any]] = mapped_column(JSON)

    # Inclusive; read as [start 00:00:00Z, end 23:59:59Z]
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)

    units: Mapped[str] = mapped_column(String(16), default="imperial")
    source: Mapped[str] = mapped_column(String(32), default="openweathermap")

    # {"summary": {min,max,avg,count}, "series": [{date,hi,lo,avg,description,icon}, ...]}
    result: Mapped[Dict[str, Any]] = mapped_column(JSON)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
