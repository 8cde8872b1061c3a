from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from api.deps import get_service
from schemas.internal.spotcheck import SpotCheckRefType
from schemas.requests import ReportSummaryQuery
from schemas.responses import PaginatedResponse, ReportSummaryView, ReportView, RunResultView
from services.spotcheck import SpotcheckService

router = APIRouter(prefix="/reports", tags=["Reports"])


def _ref_type(value: str) -> SpotCheckRefType:
    try:
        return SpotCheckRefType.from_name(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=PaginatedResponse)
async def list_reports(
    reference_type: str | None = Query(None, alias="type"),
    start: datetime | None = None,
    end: datetime | None = None,
    order: Literal["ASC", "DESC"] = "DESC",
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    service: SpotcheckService = Depends(get_service),
):
    """Report summaries whose run time falls in the window (default: last six months)."""
    try:
        query = ReportSummaryQuery(
            reference_type=_ref_type(reference_type) if reference_type else None,
            start=start,
            end=end,
            order=order,
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid query: {e}")
    page = await run_in_threadpool(service.list_reports, query)
    return PaginatedResponse.from_list(page, ReportSummaryView.from_record)


@router.post("/{reference_type}/run", response_model=RunResultView)
async def run_report(
    reference_type: str,
    start: datetime | None = None,
    end: datetime | None = None,
    service: SpotcheckService = Depends(get_service),
):
    """Run one report now; blocks until the report is persisted."""
    ref_type = _ref_type(reference_type)
    result = await run_in_threadpool(service.run_report, ref_type, start, end)
    return RunResultView.from_result(result)


@router.get("/{reference_type}/{run_datetime}", response_model=ReportView)
async def get_report(
    reference_type: str,
    run_datetime: datetime,
    mismatches_only: bool = False,
    service: SpotcheckService = Depends(get_service),
):
    ref_type = _ref_type(reference_type)
    report = await run_in_threadpool(service.get_report, ref_type, run_datetime)
    return ReportView.from_report(report, mismatches_only=mismatches_only)


@router.delete("/{reference_type}/{run_datetime}", status_code=204)
async def delete_report(
    reference_type: str,
    run_datetime: datetime,
    service: SpotcheckService = Depends(get_service),
):
    ref_type = _ref_type(reference_type)
    await run_in_threadpool(service.delete_report, ref_type, run_datetime)
    return Response(status_code=204)
