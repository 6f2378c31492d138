from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LOG_LEVEL: str = "INFO"

    # Storage
    STORE_BACKEND: str = "json"
    DATA_DIR: Path = Path("data")
    ACTIVE_CODES_FILE: str = "promo-codes.json"
    REDEEMED_CODES_FILE: str = "redeemed-codes.json"
    DATABASE_URL: str = "sqlite+pysqlite:///./promo-codes.db"
    STORE_LOCK_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # Code policy
    CODE_PREFIX: str = "PROMO-"
    CODE_LENGTH: int = Field(default=9, ge=9, le=32)
    VALIDITY_DAYS: int = Field(default=15, ge=1)
    MAX_CODES_PER_REQUEST: int = Field(default=500, ge=1)

    # Printed card
    CONTACT_PHONE: str = "03093621396"
    DISCOUNT_PERCENT: int = Field(default=10, ge=1, le=100)

    # CORS
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]

settings = Settings()
