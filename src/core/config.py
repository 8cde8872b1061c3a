"""Application configuration and .env loading."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_REFERENCE_TYPES = [
    "LBDC_SCRAPED_BILL",
    "SENATE_SITE_BILLS",
    "SENATE_SITE_CALENDAR",
    "OPENLEG_BILL",
]


class Settings(BaseSettings):
    """Centralized runtime configuration.

    The instance is shared by the scheduler and the admin surfaces, so
    ``spotcheck_scheduled`` doubles as the process-wide enable toggle.
    """

    scraped_staging_dir: Path = Field(
        default=Path("data/spotcheck/staging"), validation_alias="SCRAPED_STAGING_DIR"
    )
    archive_dir: Path = Field(
        default=Path("data/spotcheck/archive"), validation_alias="ARCHIVE_DIR"
    )
    spotcheck_db_path: Path = Field(
        default=Path("data/spotcheck/spotcheck.sqlite"),
        validation_alias="SPOTCHECK_DB_PATH",
    )

    sensite_bill_ref_queue_size: int = Field(
        default=100, ge=1, validation_alias="SENSITE_BILL_REF_QUEUE_SIZE"
    )
    sensite_bill_data_queue_size: int = Field(
        default=200, ge=1, validation_alias="SENSITE_BILL_DATA_QUEUE_SIZE"
    )
    sensite_bill_loader_workers: int = Field(
        default=2, ge=1, validation_alias="SENSITE_BILL_LOADER_WORKERS"
    )

    spotcheck_scheduled: bool = Field(default=True, validation_alias="SPOTCHECK_SCHEDULED")
    reference_types: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_REFERENCE_TYPES),
        validation_alias="REFERENCE_TYPES",
    )
    spotcheck_interval_sec: int = Field(
        default=7 * 24 * 3600, ge=1, validation_alias="SPOTCHECK_INTERVAL_SEC"
    )
    spotcheck_tick_sec: float = Field(default=30.0, gt=0, validation_alias="SPOTCHECK_TICK_SEC")
    spotcheck_run_timeout_sec: float | None = Field(
        default=None, validation_alias="SPOTCHECK_RUN_TIMEOUT_SEC"
    )
    spotcheck_session_year: int | None = Field(
        default=None, validation_alias="SPOTCHECK_SESSION_YEAR"
    )

    scrape_max_attempts: int = Field(default=5, ge=1, validation_alias="SCRAPE_MAX_ATTEMPTS")
    scrape_backoff_base_sec: float = Field(
        default=2.0, ge=0, validation_alias="SCRAPE_BACKOFF_BASE_SEC"
    )
    scrape_backoff_max_sec: float = Field(
        default=300.0, ge=0, validation_alias="SCRAPE_BACKOFF_MAX_SEC"
    )
    scrape_poll_interval_sec: float = Field(
        default=5.0, gt=0, validation_alias="SCRAPE_POLL_INTERVAL_SEC"
    )

    lrs_base_url: str = Field(
        default="https://public.leginfo.state.ny.us/navigate.cgi",
        validation_alias="LRS_BASE_URL",
    )
    openleg_base_url: str = Field(
        default="http://localhost:8080", validation_alias="OPENLEG_BASE_URL"
    )
    openleg_peer_url: str | None = Field(default=None, validation_alias="OPENLEG_PEER_URL")
    openleg_api_key: str | None = Field(default=None, validation_alias="OPENLEG_API_KEY")
    openleg_page_size: int = Field(default=100, ge=1, validation_alias="OPENLEG_PAGE_SIZE")
    http_timeout_sec: float = Field(default=30.0, gt=0, validation_alias="HTTP_TIMEOUT_SEC")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("reference_types", mode="before")
    @classmethod
    def _split_reference_types(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip()
            value = json.loads(text) if text.startswith("[") else text.split(",")
        if isinstance(value, (list, tuple, set, frozenset)):
            seen: list[str] = []
            for item in value:
                name = str(getattr(item, "value", item)).strip().upper()
                if name and name not in seen:
                    seen.append(name)
            return seen
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def scrape_staging_bill_dir(self) -> Path:
        return self.scraped_staging_dir / "bill"

    @property
    def scrape_archive_bill_dir(self) -> Path:
        return self.archive_dir / "scraped" / "bill"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from .env/environment."""
    return Settings()


__all__ = ["DEFAULT_REFERENCE_TYPES", "Settings", "get_settings"]
