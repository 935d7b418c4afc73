# Tests for the quick-lookup path: current conditions and the 5-day preview.

import httpx
import pytest

from conftest import CURRENT_PATH, FORECAST_PATH, epoch, march_forecast, raising, sample
from weatherlookup.conditions import lookup_current, normalize_forecast_preview, normalize_now
from weatherlookup.errors import ProviderError


def _observation(**overrides):
    raw = {
        "name": "Chicago",
        "main": {"temp": 41.5, "feels_like": 35.4, "humidity": 71},
        "weather": [{"description": "light rain", "icon": "10d"}],
        "wind": {"speed": 12.5},
        "dt": epoch("2024-03-01T15:30"),
    }
    raw.update(overrides)
    return raw


class TestNormalizeNow:
    def test_maps_and_rounds(self):
        now = normalize_now(_observation())
        assert now.city == "Chicago"
        assert (now.temp, now.feels_like, now.wind_speed) == (42, 35, 13)
        assert (now.description, now.icon, now.humidity) == ("light rain", "10d", 71)
        assert now.time == "2024-03-01T15:30:00.000Z"

    def test_defaults_for_missing_fields(self):
        raw = _observation(weather=[], wind={})
        raw["main"] = {"temp": -3.5, "feels_like": -8.2}
        now = normalize_now(raw)
        assert (now.description, now.icon) == ("—", "01d")
        assert now.wind_speed == 0
        assert now.humidity == 0
        assert now.temp == -4


class TestForecastPreview:
    def test_limits_to_five_utc_dates(self):
        """Six days of samples give five cards, in feed order."""
        items = march_forecast()["list"] + [sample("2024-03-06T00:00", 1)]
        days = normalize_forecast_preview(items)
        assert [d["date"] for d in days] == [
            "2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04", "2024-03-05",
        ]
        assert days[0] == {"date": "2024-03-01", "hi": 17, "lo": 10, "description": "clear sky", "icon": "01d"}

    def test_buckets_by_utc_date_and_noon_utc(self):
        """Local offset is ignored; the 12:00Z step supplies the icon."""
        items = [
            sample("2024-03-01T09:00", 5, description="am"),
            sample("2024-03-01T12:00", 7, temp_min=6, temp_max=9.5, description="midday", icon="03d"),
            sample("2024-03-01T21:00", 2, description="pm"),
            sample("2024-03-02T00:00", 1, description="night"),
        ]
        days = normalize_forecast_preview(items)
        assert days[0] == {"date": "2024-03-01", "hi": 10, "lo": 2, "description": "midday", "icon": "03d"}
        assert days[1]["date"] == "2024-03-02"

    def test_empty(self):
        assert normalize_forecast_preview([]) == []


class TestLookupCurrent:
    @pytest.mark.asyncio
    async def test_by_zip(self, provider, client):
        provider.set(CURRENT_PATH, 200, _observation())
        provider.set(FORECAST_PATH, 200, march_forecast())

        out = await lookup_current(client, zip_code="60601")

        assert out["source"] == "openweathermap"
        assert out["now"]["temp"] == 42
        assert len(out["forecast"]) == 5
        for path in (CURRENT_PATH, FORECAST_PATH):
            (request,) = provider.calls(path)
            assert request.url.params["zip"] == "60601,US"
            assert request.url.params["units"] == "imperial"

    @pytest.mark.asyncio
    async def test_by_coords(self, provider, client):
        provider.set(CURRENT_PATH, 200, _observation())
        provider.set(FORECAST_PATH, 200, march_forecast())

        await lookup_current(client, lat=41.88, lon=-87.63)

        params = provider.calls(CURRENT_PATH)[0].url.params
        assert (params["lat"], params["lon"]) == ("41.88", "-87.63")
        assert "zip" not in params

    @pytest.mark.asyncio
    async def test_either_failure_fails_lookup(self, provider, client):
        provider.set(CURRENT_PATH, 200, _observation())
        provider.set(FORECAST_PATH, 429, {"cod": 429, "message": "Too many requests"})

        with pytest.raises(ProviderError) as exc:
            await lookup_current(client, zip_code="60601")
        assert str(exc.value) == "Too many requests"
        assert exc.value.status_code == 429

    @pytest.mark.asyncio
    async def test_timeout_fails_lookup(self, provider, client):
        provider.set(FORECAST_PATH, 200, march_forecast())
        provider.routes[CURRENT_PATH] = raising(httpx.ConnectTimeout)

        with pytest.raises(ProviderError) as exc:
            await lookup_current(client, lat=41.88, lon=-87.63)
        assert str(exc.value) == "Weather service unavailable"
        assert exc.value.status_code is None
