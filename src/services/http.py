"""Shared requests session setup for outbound HTTP."""

from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "spotcheck/0.1 (+legislative content audit)"


def build_session(retries: int = 2, backoff_factor: float = 1.0) -> requests.Session:
    """A session that retries idempotent GETs on gateway errors."""
    retry = Retry(
        total=retries,
        allowed_methods=["GET"],
        backoff_factor=backoff_factor,
        status_forcelist=[502, 503, 504],
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": USER_AGENT})
    return session


__all__ = ["USER_AGENT", "build_session"]
