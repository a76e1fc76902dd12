"""Response models for the status API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str


class StatusResponse(BaseModel):
    """Scheduler state plus the report of the last finished cycle."""

    cycle_running: bool
    skipped_ticks: int
    dry_run: bool
    last_cycle: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
    detail: str
