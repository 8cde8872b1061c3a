from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool

from api.deps import get_service
from schemas.requests import EnqueueRequest
from schemas.responses import DeadLetterView, PaginatedResponse, QueueEntryView
from services.spotcheck import SpotcheckService

router = APIRouter(prefix="/queue", tags=["Scrape queue"])


@router.get("", response_model=PaginatedResponse)
async def list_queue(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    order: Literal["ASC", "DESC"] = "DESC",
    service: SpotcheckService = Depends(get_service),
):
    page = await run_in_threadpool(service.list_queue, limit=limit, offset=offset, order=order)
    return PaginatedResponse.from_list(page, QueueEntryView.from_entry)


@router.post("", response_model=QueueEntryView, status_code=201)
async def enqueue(request: EnqueueRequest, service: SpotcheckService = Depends(get_service)):
    """Queue a bill for scraping; an already queued bill is reprioritized."""
    try:
        entry = await run_in_threadpool(service.enqueue, request.bill_id, request.priority)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return QueueEntryView.from_entry(entry)


@router.get("/head", response_model=QueueEntryView)
async def queue_head(service: SpotcheckService = Depends(get_service)):
    entry = await run_in_threadpool(service.reference_store.dequeue_head)
    return QueueEntryView.from_entry(entry)


@router.get("/dead-letters", response_model=list[DeadLetterView])
async def dead_letters(service: SpotcheckService = Depends(get_service)):
    entries = await run_in_threadpool(service.dead_letters)
    return [DeadLetterView.from_entry(entry) for entry in entries]


@router.delete("/{bill_id}", status_code=204)
async def remove_from_queue(bill_id: str, service: SpotcheckService = Depends(get_service)):
    try:
        await run_in_threadpool(service.remove_from_queue, bill_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(status_code=204)
