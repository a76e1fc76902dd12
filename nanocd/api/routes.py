"""Status API routes."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from nanocd.api.schemas import ErrorResponse, HealthResponse, StatusResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from nanocd import __version__

    return HealthResponse(status="ok", version=__version__)


@router.get(
    "/status",
    response_model=StatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def status(request: Request) -> StatusResponse | JSONResponse:
    scheduler = request.app.state.scheduler
    report = scheduler.last_report
    if report is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(
                error="NO_CYCLE_YET",
                detail="No reconciliation cycle has finished yet.",
            ).model_dump(),
        )
    return StatusResponse(
        cycle_running=scheduler.is_cycle_running,
        skipped_ticks=scheduler.skipped_ticks,
        dry_run=report.dry_run,
        last_cycle=report.to_dict(),
    )
