"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite:///./repairshop.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Folio buckets (OS-{year}-{month}-NNN) roll over at local midnight
    SHOP_TIMEZONE: str = "America/Mexico_City"
    FOLIO_MAX_RETRIES: int = 3

    # Semaphore / alert thresholds
    ALERT_RED_DAYS: int = 5  # Ready for pickup, days since repaired_at
    ALERT_YELLOW_HOURS: int = 72  # Diagnosis/quote, hours since received_at
    SEMAPHORE_NEW_HOURS: int = 24  # Orders younger than this show as new

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
