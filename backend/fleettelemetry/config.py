from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./data/telemetry.db"
    LOG_LEVEL: str = "INFO"
    # Re-submitting identical bytes returns 200 instead of 409 when enabled
    ALLOW_UNSAFE_DUPLICATE_INGEST: bool = False
    # Upload and query limits
    MAX_UPLOAD_SIZE_MB: int = 50
    DEFAULT_QUERY_LIMIT: int = 200
    MAX_QUERY_LIMIT: int = 1000
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # API authentication (if unset, all requests pass)
    FLEETTELEMETRY_API_KEY: str | None = None
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"
    # slowapi limit strings: the default covers every route, ingest has its own
    DEFAULT_RATE_LIMIT: str = "120/minute"
    INGEST_RATE_LIMIT: str = "30/minute"


settings = Settings()
