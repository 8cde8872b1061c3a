"""Unit tests for the core configuration module."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from core.config import DEFAULT_REFERENCE_TYPES, Settings, get_settings


def test_settings_defaults():
    """Test that Settings initializes with expected defaults."""
    settings = Settings(_env_file=None)

    assert settings.reference_types == DEFAULT_REFERENCE_TYPES
    assert settings.spotcheck_scheduled is True
    assert settings.spotcheck_interval_sec == 7 * 24 * 3600
    assert settings.sensite_bill_ref_queue_size == 100
    assert settings.sensite_bill_data_queue_size == 200
    assert settings.scrape_max_attempts == 5
    assert settings.openleg_peer_url is None
    assert settings.scrape_staging_bill_dir == Path("data/spotcheck/staging/bill")
    assert settings.scrape_archive_bill_dir == Path("data/spotcheck/archive/scraped/bill")


def test_settings_with_env_vars(monkeypatch):
    """Test that Settings properly loads values from environment variables."""
    monkeypatch.setenv("SENSITE_BILL_LOADER_WORKERS", "4")
    monkeypatch.setenv("SPOTCHECK_SCHEDULED", "false")
    monkeypatch.setenv("OPENLEG_PEER_URL", "http://peer:8080")
    monkeypatch.setenv("LOG_LEVEL", " debug ")

    settings = Settings(_env_file=None)

    assert settings.sensite_bill_loader_workers == 4
    assert settings.spotcheck_scheduled is False
    assert settings.openleg_peer_url == "http://peer:8080"
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "raw",
    [
        "senate_site_bills, openleg_bill,SENATE_SITE_BILLS",
        '["senate_site_bills", "OPENLEG_BILL"]',
    ],
)
def test_reference_types_from_env(monkeypatch, raw):
    """Comma separated and JSON lists are both accepted and de-duplicated."""
    monkeypatch.setenv("REFERENCE_TYPES", raw)

    settings = Settings(_env_file=None)

    assert settings.reference_types == ["SENATE_SITE_BILLS", "OPENLEG_BILL"]


def test_settings_validation():
    """Queue sizes and worker counts must be positive."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, sensite_bill_loader_workers=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, spotcheck_tick_sec=0)


def test_get_settings_singleton():
    """Test that get_settings returns the same instance each time."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
    assert isinstance(settings1, Settings)


def test_settings_extra_field_handling():
    """Test that settings ignores extra fields."""
    with patch.dict(os.environ, {"UNKNOWN_FIELD": "value"}):
        settings = Settings(_env_file=None)

    assert hasattr(settings, "reference_types")
