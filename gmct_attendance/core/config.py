from pydantic_settings import BaseSettings
from pydantic import validator


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "GMCT Attendance"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Local durable store
    LOCAL_DATABASE_URL: str = "sqlite+aiosqlite:///./gmct_attendance.db"
    DATABASE_ECHO: bool = False

    # Remote store (Supabase / PostgREST)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    REMOTE_TIMEOUT_SECONDS: float = 15.0

    # Sync settings
    SYNC_INTERVAL_SECONDS: float = 30.0
    SYNC_RETENTION_DAYS: int = 7

    # Reachability probe for hosts without a native connectivity signal
    CONNECTIVITY_PROBE_ENABLED: bool = False
    CONNECTIVITY_PROBE_URL: str = "https://www.google.com"
    CONNECTIVITY_PROBE_INTERVAL_SECONDS: float = 10.0
    CONNECTIVITY_PROBE_TIMEOUT_SECONDS: float = 2.0

    @validator("LOCAL_DATABASE_URL")
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("LOCAL_DATABASE_URL is required")
        return v

    @validator("SUPABASE_URL")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @validator(
        "REMOTE_TIMEOUT_SECONDS",
        "SYNC_INTERVAL_SECONDS",
        "CONNECTIVITY_PROBE_INTERVAL_SECONDS",
        "CONNECTIVITY_PROBE_TIMEOUT_SECONDS",
    )
    def validate_positive_seconds(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @validator("SYNC_RETENTION_DAYS")
    def validate_retention(cls, v):
        if v < 1:
            raise ValueError("SYNC_RETENTION_DAYS must be at least 1")
        return v

    @validator("LOG_LEVEL")
    def normalize_log_level(cls, v):
        return v.upper()

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
