from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from api.deps import get_service
from schemas.internal.spotcheck import SpotCheckRefType
from schemas.requests import SchedulerToggle
from schemas.responses import RunResultView, SchedulerStatus
from services.spotcheck import SpotcheckService

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


class TriggerResponse(BaseModel):
    started: bool
    result: RunResultView | None = None


@router.get("", response_model=SchedulerStatus)
async def scheduler_status(service: SpotcheckService = Depends(get_service)):
    return SchedulerStatus.model_validate(service.scheduler_status())


@router.put("", response_model=SchedulerStatus)
async def toggle_scheduler(
    request: SchedulerToggle, service: SpotcheckService = Depends(get_service)
):
    """Enable or disable periodic runs; manual triggers are unaffected."""
    service.set_scheduler_enabled(request.enabled)
    return SchedulerStatus.model_validate(service.scheduler_status())


@router.post("/{reference_type}/trigger", response_model=TriggerResponse)
async def trigger(
    reference_type: SpotCheckRefType, service: SpotcheckService = Depends(get_service)
):
    """Run a report unless one of the same type is already in flight."""
    started = await run_in_threadpool(service.trigger, reference_type)
    result = service.scheduler.last_result(reference_type) if started else None
    return TriggerResponse(
        started=started,
        result=RunResultView.from_result(result) if result is not None else None,
    )
