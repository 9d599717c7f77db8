"""Centralized settings management for the ingestion run."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import make_url


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    in the current working directory.
    """

    # -------------------------------------------------------------------------
    # DATABASE
    # -------------------------------------------------------------------------
    DATABASE_URL: str = Field(..., min_length=1)
    DATABASE_ECHO: bool = False

    # -------------------------------------------------------------------------
    # INGESTION
    # -------------------------------------------------------------------------
    BATCH_SIZE: int = Field(20, ge=1)
    FLUSH_THRESHOLD: int = Field(50, ge=1)
    PROGRESS_INTERVAL: int = Field(50, ge=1)
    MAX_WORKERS: int = Field(5, ge=1)
    ADAPTER_TIMEOUT_S: float | None = None

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    CONFIG_DIR: Path = Path(__file__).resolve().parent
    INGESTION_CONFIG_PATH: Path = CONFIG_DIR / "ingestion.yaml"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def sqlalchemy_url(self) -> str:
        """
        Return DATABASE_URL with an explicit driver for PostgreSQL.

        Heroku-style ``postgres://`` and bare ``postgresql://`` URLs are
        rewritten to ``postgresql+psycopg2://``. Other URLs (e.g. sqlite)
        are returned unchanged.
        """
        url = make_url(self.DATABASE_URL)
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername="postgresql+psycopg2")
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
