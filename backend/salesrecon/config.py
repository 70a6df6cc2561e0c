# backend/salesrecon/config.py
from functools import lru_cache
from typing import List
import secrets

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # environment: "dev" for running the API locally, "test" for pytest
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str | None = None
    TEST_DATABASE_URL: str | None = None
    DB_REQUIRE_SSL: bool = False

    # --- Auth / JWT ---
    JWT_SECRET: str | None = Field(None, description="JWT signing secret. Must be set outside dev/test.")
    JWT_ALG: str = "HS256"
    JWT_ACCESS_MIN: int = 30
    JWT_REFRESH_DAYS: int = 7

    # --- Operator bootstrap (scripts/seed_admin.py) ---
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str | None = None

    # --- HTTP ---
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )
    TRUSTED_HOSTS: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "testserver",
            "test",
        ]
    )

    # --- Sales reporting ---
    # Hard ceiling on rows scanned by one aggregation request.
    AGGREGATE_SCAN_CAP: int = Field(100_000, gt=0)
    # Rows per backfill batch.
    BACKFILL_LIMIT: int = Field(1000, gt=0)
    # Rows per INSERT statement during spreadsheet import.
    IMPORT_CHUNK_SIZE: int = Field(500, gt=0)

    @model_validator(mode="after")
    def _check_jwt_secret(self):
        # In dev/test, auto-generate an ephemeral secret if none provided to avoid committing secrets.
        if self.ENV in ("dev", "test"):
            if not self.JWT_SECRET:
                self.JWT_SECRET = secrets.token_urlsafe(32)
            return self
        if not self.JWT_SECRET:
            raise ValueError("JWT_SECRET must be set via environment for non-dev/test environments.")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
