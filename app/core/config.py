from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Per-head balance above which an unpaid head is carried forward as an arrear.
    arrear_min_balance: Decimal = Field(Decimal("0.50"), alias="ARREAR_MIN_BALANCE")
    # Total pending balance at or below this is treated as fully cleared.
    cleared_tolerance: Decimal = Field(Decimal("0.01"), alias="CLEARED_TOLERANCE")

    default_nationality: str = Field("Indian", alias="DEFAULT_NATIONALITY")

    # Open TC sessions untouched for longer than this are dropped.
    tc_session_ttl_seconds: int = Field(3600, alias="TC_SESSION_TTL_SECONDS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
