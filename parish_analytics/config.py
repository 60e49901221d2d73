# parish_analytics/config.py
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load local .env for development
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")


class Settings(BaseSettings):
    # ─── Database ───────────────────────────────────────────────────────────────
    DATABASE_URL: str = "postgresql+psycopg2://localhost:5432/parish_analytics"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # ─── Reports ────────────────────────────────────────────────────────────────
    # "today" for age buckets and the default current-year range
    REPORT_TIMEZONE: str = "America/Chicago"

    # ─── Auth / tenancy ─────────────────────────────────────────────────────────
    CHURCH_HEADER: str = "X-Church-Id"
    SESSION_COOKIE: str = "session_token"

    # ─── Logging ────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")

    # ─── Optional Extras ────────────────────────────────────────────────────────
    API_BASE_URL: str = "http://localhost:8000"
    API_TOKEN: Optional[str] = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# single settings instance for the whole app
settings = Settings()


def report_tz() -> ZoneInfo:
    """
    Timezone used to decide what "today" is for a report request.
    Falls back to UTC when REPORT_TIMEZONE is not a known zone.
    """
    try:
        return ZoneInfo(settings.REPORT_TIMEZONE)
    except (KeyError, ValueError):
        return ZoneInfo("UTC")
