from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://homehistory:homehistory@db:5432/homehistory"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://homehistory.app,https://admin.homehistory.app"
    CORS_ORIGINS: str = "*"

    # External geocoding providers
    CENSUS_GEOCODER_URL: str = (
        "https://geocoding.geo.census.gov/geocoder/locations/onelineaddress"
    )
    CENSUS_BENCHMARK: str = "2020"
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "HomeHistoryApp/1.0"
    GEOCODER_TIMEOUT_SECONDS: float = 10.0

    # Enrichment freshness
    MEMORY_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    ENRICHMENT_STALE_DAYS: int = 30

    # Admin backfill. Nominatim allows ~1 request/second.
    BACKFILL_DEFAULT_LIMIT: int = 100
    BACKFILL_CONCURRENCY: int = 5
    BACKFILL_DELAY_SECONDS: float = 1.1

    # Property matching
    PROXIMITY_DEGREES: float = 0.001
    NEARBY_DEFAULT_RADIUS_MILES: float = 1.0

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
