"""
Application error taxonomy.

Every error carries a user-facing message; main.py maps each class
to an HTTP status so routes never leak stack traces.
"""

from __future__ import annotations

from typing import Optional


class WeatherError(RuntimeError):
    """Base class for user-facing weather lookup failures."""
    pass


class ValidationError(WeatherError):
    """Bad caller input (malformed ZIP, missing field, bad date, unknown units)."""


class GeocodeError(WeatherError):
    """The provider rejected a location or found nothing for it."""


class AggregationError(WeatherError):
    """Forecast fetch failed, returned no data, or the window has no coverage."""


class ProviderError(WeatherError):
    """Raw non-success response from the weather provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(WeatherError):
    """Required configuration (the provider API key) is missing."""


class NotFoundError(WeatherError):
    """No saved query exists for the requested id."""


class PersistenceError(WeatherError):
    """A store operation failed; the driver message is passed through."""
