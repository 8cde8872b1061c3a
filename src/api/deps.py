"""Request-scoped dependencies for the admin API."""

from __future__ import annotations

from functools import lru_cache

from core.config import get_settings
from services.spotcheck import SpotcheckService


@lru_cache(maxsize=1)
def get_service() -> SpotcheckService:
    return SpotcheckService.from_settings(get_settings())


__all__ = ["get_service"]
