from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://stifle:stifle@db:5432/stifle"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://stifleapp.com,https://admin.stifleapp.com"
    CORS_ORIGINS: str = "*"

    # --- Sync / clock normalization ---
    EVENT_MAX_AGE_DAYS: int = 7
    EVENT_MAX_FUTURE_DRIFT_SECONDS: int = 60
    SYNC_PAGE_SIZE: int = 100
    SYNC_MAX_EVENTS: int = 500

    # --- Scoring ---
    MIN_STREAK_SECONDS: int = 60
    DEFAULT_TIMEZONE: str = "UTC"

    # --- Retention ---
    EVENT_RETENTION_DAYS: int = 14
    PURGE_ON_STARTUP: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
