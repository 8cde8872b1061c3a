from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.actions import config, health, mismatches, queue, reports, scheduler
from spotcheck.errors import (
    MismatchNotFound,
    PipelineCancelled,
    PipelineFailure,
    QueueEmpty,
    ReferenceDataNotFound,
    ReferenceSourceUnavailable,
    ReportNotFound,
    SpotcheckError,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="OpenLeg Spot-Check API")

for module in (health, config, reports, mismatches, queue, scheduler):
    app.include_router(module.router)


def status_code_for(exc: SpotcheckError) -> int:
    if isinstance(exc, (ReportNotFound, MismatchNotFound, QueueEmpty, ReferenceDataNotFound)):
        return 404
    if isinstance(exc, PipelineCancelled):
        return 409
    if isinstance(exc, ReferenceSourceUnavailable):
        return 503
    if isinstance(exc, PipelineFailure) and isinstance(exc.cause, ReferenceSourceUnavailable):
        return 503
    return 500


@app.exception_handler(SpotcheckError)
async def spotcheck_error_handler(request: Request, exc: SpotcheckError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )
