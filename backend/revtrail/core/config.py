"""Configuration settings for revtrail.

All values are read from the environment (or a local ``.env`` file) through
pydantic-settings. Import the module-level ``settings`` singleton.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Revtrail settings.

    Attributes are grouped by the component that reads them. Durations are in
    seconds unless the name says otherwise.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    # ---------------------------------------------------------------- runtime
    ENVIRONMENT: str = "local"
    LOCAL_DEVELOPMENT: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    # --------------------------------------------------------------- database
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "revtrail"
    POSTGRES_PASSWORD: str = "revtrail"
    POSTGRES_DB: str = "revtrail"
    DB_ECHO: bool = False

    # --------------------------------------------------------------- platform
    AIRTABLE_BASE_URL: str = "https://airtable.com"
    AIRTABLE_EMAIL: Optional[str] = None
    AIRTABLE_PASSWORD: Optional[str] = None
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    TIME_ZONE: str = "America/Toronto"
    USER_LOCALE: str = "en"

    # ---------------------------------------------------------------- session
    SESSION_FRESHNESS_SECONDS: int = Field(default=300, gt=0)
    SESSION_PROBE_TIMEOUT_SECONDS: float = 15.0
    SESSION_ACCEPT_INCONCLUSIVE_PROBE: bool = False

    # ------------------------------------------------------------- dispatcher
    DISPATCHER_MIN_INTERVAL_SECONDS: float = Field(default=0.22, ge=0)
    DISPATCHER_MAX_CONCURRENCY: int = Field(default=3, ge=1)
    DISPATCHER_MAX_ATTEMPTS: int = Field(default=4, ge=1)
    DISPATCHER_BACKOFF_BASE_SECONDS: float = 1.0
    DISPATCHER_BACKOFF_MAX_SECONDS: float = 30.0

    # ---------------------------------------------------------------- fetcher
    REVISION_PAGE_SIZE: int = Field(default=100, gt=0)
    REVISION_MAX_PAGES: int = Field(default=1, ge=1)
    REVISION_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ----------------------------------------------------------------- parser
    DIFF_POLARITY_PROFILE: str = "default"

    # ------------------------------------------------------------------- sync
    SYNC_DEFAULT_BATCH_SIZE: int = Field(default=5, gt=0)
    SYNC_BATCH_DELAY_SECONDS: float = 1.0
    SYNC_BATCH_DELAY_JITTER_SECONDS: float = 0.5
    SYNC_STALE_JOB_SECONDS: int = 1800
    SYNC_JOB_RETENTION_SECONDS: int = 600
    SYNC_MAX_TARGETS: Optional[int] = None

    # ---------------------------------------------------------------- browser
    BROWSER_HEADLESS: bool = True
    BROWSER_NAVIGATION_TIMEOUT_MS: int = 60000
    BROWSER_SELECTOR_TIMEOUT_MS: int = 15000
    BROWSER_SCREENSHOT_DIR: str = "."
    BROWSER_ARGS: List[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--window-size=1920,1080",
        "--disable-gpu",
        "--disable-extensions",
    ]

    @field_validator("AIRTABLE_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def SQLALCHEMY_ASYNC_DATABASE_URI(self) -> str:
        """Async SQLAlchemy URI, ``DATABASE_URL`` wins over the POSTGRES_* parts."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
