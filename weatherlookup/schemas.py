"""
Pydantic schemas.

Why:
- Defines the contract of our REST endpoints
- Input fields are deliberately loose (strings, optionals): the business
  rules live in crud.py / geocoding.py so every rejection comes back as a
  400 with a readable message rather than a generic 422
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union


class LocationIn(BaseModel):
    """
    Tagged location:
    {"type": "zip", "zip": "10001"} | {"type": "q", "q": "Paris, FR"} |
    {"type": "coords", "lat": 48.85, "lon": 2.35}
    """
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    zip: Optional[Union[str, int]] = None
    q: Optional[str] = None
    lat: Optional[Union[float, str]] = None
    lon: Optional[Union[float, str]] = None


class DateRangeIn(BaseModel):
    """Calendar dates as YYYY-MM-DD strings, inclusive."""
    start: Optional[str] = None
    end: Optional[str] = None


class QueryCreate(BaseModel):
    """Payload for saving a query: location + date range (+ units/notes)."""
    model_config = ConfigDict(populate_by_name=True)

    location: Optional[LocationIn] = None
    date_range: Optional[DateRangeIn] = Field(None, alias="dateRange")
    units: str = "imperial"
    notes: Optional[str] = None


class QueryUpdate(BaseModel):
    """
    Any subset of location / date range / notes.
    Units are fixed at creation. The forecast is re-aggregated either way.
    """
    model_config = ConfigDict(populate_by_name=True)

    location: Optional[LocationIn] = None
    date_range: Optional[DateRangeIn] = Field(None, alias="dateRange")
    notes: Optional[str] = None


class NormalizedLocationOut(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    lat: float
    lon: float
    zip: Optional[str] = None


class DailyForecastOut(BaseModel):
    """One local calendar day of a saved query's forecast."""
    date: str
    hi: int
    lo: int
    avg: int
    description: str
    icon: str


class SummaryOut(BaseModel):
    min: int
    max: int
    avg: int
    count: int


class ResultOut(BaseModel):
    summary: SummaryOut
    series: List[DailyForecastOut]


class QueryOut(BaseModel):
    """Saved query as returned from the API."""
    id: str
    location_input: Dict[str, Any]
    normalized_location: NormalizedLocationOut
    start_date: date
    end_date: date
    units: str
    source: str
    result: ResultOut
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
