from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """
    Centralized configuration.

    Why:
    - Keeps secrets (API keys) out of source code
    - Makes local/dev/prod configuration consistent
    - Read once at startup, then passed explicitly to the provider client

    Loaded from:
    - environment variables
    - .env file (if present)
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional at load time so the app can boot and report the problem;
    # every provider call goes through require_api_key() first.
    openweather_api_key: Optional[str] = None
    openweather_base_url: str = "https://api.openweathermap.org"
    http_timeout_s: float = 10.0

    app_name: str = "Weather Lookup"

    # SQLite file path (simple local persistence)
    sqlite_path: str = "weather_queries.sqlite3"

    log_level: str = "INFO"

    def require_api_key(self) -> str:
        """Return the provider key or fail fast with a configuration error."""
        key = (self.openweather_api_key or "").strip()
        if not key:
            raise ConfigurationError("Server missing OPENWEATHER_API_KEY")
        return key


settings = Settings()
