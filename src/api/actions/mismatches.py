from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from api.deps import get_service
from schemas.internal.spotcheck import SpotCheckRefType
from schemas.requests import IgnoreRequest, IssueRequest, OpenMismatchQuery
from schemas.responses import MismatchView, OpenMismatchSummaryView, PaginatedResponse
from services.spotcheck import SpotcheckService

router = APIRouter(prefix="/mismatches", tags=["Mismatches"])


@router.post("/query", response_model=PaginatedResponse)
async def query_mismatches(
    payload: dict[str, Any] | None = Body(None),
    service: SpotcheckService = Depends(get_service),
):
    """Query open mismatches; the body is an ``OpenMismatchQuery``."""
    try:
        query = OpenMismatchQuery.model_validate(payload or {})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid query: {e}")
    page = await run_in_threadpool(service.query_mismatches, query)
    return PaginatedResponse.from_list(page, MismatchView.from_record)


@router.get("/summary", response_model=list[OpenMismatchSummaryView])
async def mismatch_summary(
    reference_types: list[SpotCheckRefType] | None = Query(None, alias="type"),
    observed_after: datetime | None = None,
    service: SpotcheckService = Depends(get_service),
):
    rows = await run_in_threadpool(service.mismatch_summary, reference_types, observed_after)
    return [OpenMismatchSummaryView(**row) for row in rows]


@router.get("/{mismatch_id}", response_model=MismatchView)
async def get_mismatch(mismatch_id: int, service: SpotcheckService = Depends(get_service)):
    record = await run_in_threadpool(service.get_mismatch, mismatch_id)
    return MismatchView.from_record(record)


@router.put("/{mismatch_id}/ignore", response_model=MismatchView)
async def set_ignore_status(
    mismatch_id: int,
    request: IgnoreRequest,
    service: SpotcheckService = Depends(get_service),
):
    record = await run_in_threadpool(
        service.set_mismatch_ignore, mismatch_id, request.ignore_status
    )
    return MismatchView.from_record(record)


@router.post("/{mismatch_id}/issues", response_model=MismatchView)
async def add_issue(
    mismatch_id: int,
    request: IssueRequest,
    service: SpotcheckService = Depends(get_service),
):
    record = await run_in_threadpool(service.add_issue, mismatch_id, request.issue_id)
    return MismatchView.from_record(record)


@router.delete("/{mismatch_id}/issues/{issue_id}", response_model=MismatchView)
async def remove_issue(
    mismatch_id: int,
    issue_id: str,
    service: SpotcheckService = Depends(get_service),
):
    record = await run_in_threadpool(service.remove_issue, mismatch_id, issue_id)
    return MismatchView.from_record(record)
