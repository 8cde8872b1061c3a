"""HTTP client for an openleg JSON API, plus content data service adapters.

The same client serves two roles: the local instance backs the content data
service every report reads from, and a peer instance is the reference for
OPENLEG_BILL audits.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from services.http import build_session
from schemas.internal.content import Bill, CalendarEntryList
from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId
from spotcheck.errors import ParseError, ReferenceSourceUnavailable

logger = logging.getLogger(__name__)


class OpenlegClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        page_size: int = 100,
        session: requests.Session | None = None,
        source: str = "openleg",
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._page_size = page_size
        self._session = session or build_session()
        self._source = source

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def page_size(self) -> int:
        return self._page_size

    def get_bill(self, base_bill_id: BaseBillId) -> Bill | None:
        payload = self._get_json(f"/api/3/bills/{base_bill_id.session}/{base_bill_id.print_no}")
        if payload is None:
            return None
        return _validate(Bill, payload, str(base_bill_id))

    def list_bill_ids(self, session: int, page: int = 1) -> list[BaseBillId]:
        payload = self._get_json(f"/api/3/bills/{session}", self._page_params(page))
        return [
            BaseBillId(
                print_no=item.get("print_no") or item["printNo"],
                session=int(item.get("session", session)),
            )
            for item in _items(payload)
        ]

    def get_calendar_entry_list(self, list_id: CalendarEntryListId) -> CalendarEntryList | None:
        payload = self._get_json(
            f"/api/3/calendars/{list_id.year}/{list_id.cal_no}/{list_id.list_type}/{list_id.sequence}"
        )
        if payload is None:
            return None
        payload.setdefault("list_id", list_id.model_dump())
        return _validate(CalendarEntryList, payload, str(list_id))

    def list_calendar_entry_list_ids(self, year: int, page: int = 1) -> list[CalendarEntryListId]:
        payload = self._get_json(f"/api/3/calendars/{year}/lists", self._page_params(page))
        return [
            CalendarEntryListId(
                year=int(item.get("year", year)),
                cal_no=int(item.get("cal_no", item.get("calNo", 0))),
                list_type=item.get("list_type") or item["type"],
                sequence=int(item.get("sequence", item.get("sequenceNo", 0))),
            )
            for item in _items(payload)
        ]

    def _page_params(self, page: int) -> dict[str, Any]:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        return {"limit": self._page_size, "offset": (page - 1) * self._page_size}

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        query = dict(params or {})
        if self._api_key:
            query["key"] = self._api_key
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=query, timeout=self._timeout)
        except requests.RequestException as exc:
            raise ReferenceSourceUnavailable(self._source, f"GET {url} failed: {exc}", exc) from exc
        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ReferenceSourceUnavailable(
                self._source, f"GET {url} returned {response.status_code}", exc
            ) from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise ParseError(f"Non-JSON response from {url}") from exc
        if isinstance(data, dict) and "result" in data:
            if data.get("success") is False:
                return None
            data = data["result"]
        if not isinstance(data, dict):
            raise ParseError(f"Unexpected payload from {url}")
        return data


class OpenlegBillDataService:
    """Content data service for bills backed by an openleg instance."""

    def __init__(self, client: OpenlegClient) -> None:
        self._client = client

    def get_content(self, key: BillId | BaseBillId) -> Bill | None:
        base = key.base_bill_id if isinstance(key, BillId) else key
        return self._client.get_bill(base)

    def list_keys(self, session: int, page: int) -> list[BaseBillId]:
        return self._client.list_bill_ids(session, page)

    def get_publish_status(self, key: BillId | BaseBillId) -> bool:
        bill = self.get_content(key)
        if bill is None:
            return False
        return bill.is_published(key.version if isinstance(key, BillId) else None)


class OpenlegCalendarDataService:
    def __init__(self, client: OpenlegClient) -> None:
        self._client = client

    def get_content(self, key: CalendarEntryListId) -> CalendarEntryList | None:
        return self._client.get_calendar_entry_list(key)

    def list_keys(self, session: int, page: int) -> list[CalendarEntryListId]:
        return self._client.list_calendar_entry_list_ids(session, page)

    def get_publish_status(self, key: CalendarEntryListId) -> bool:
        return self.get_content(key) is not None


def _items(payload: dict[str, Any] | None) -> list[dict[str, Any]]:
    if payload is None:
        return []
    items = payload.get("items", [])
    if not isinstance(items, list):
        raise ParseError("Listing payload 'items' must be a list")
    return [item for item in items if isinstance(item, dict)]


def _validate(model, payload: dict[str, Any], label: str):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ParseError(f"Invalid {model.__name__} payload for {label}: {exc}") from exc


__all__ = ["OpenlegBillDataService", "OpenlegCalendarDataService", "OpenlegClient"]
