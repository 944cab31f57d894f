"""Scan control API endpoints."""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from switchdex.api.deps import get_services, require_admin_api_key
from switchdex.errors import InvalidIntervalError, PersistenceError
from switchdex.models import Category
from switchdex.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scans", tags=["scans"])


class TriggerScanRequest(BaseModel):
    """Request model for triggering a scan."""
    categories: Optional[List[Category]] = None


class TriggerScanResponse(BaseModel):
    """Response model for a triggered scan."""
    status: str
    message: str
    categories: Optional[List[str]] = None


class IntervalRequest(BaseModel):
    """Request model for changing the scan interval."""
    minutes: int


class IntervalResponse(BaseModel):
    """Response model for the scan interval."""
    interval_minutes: int
    next_run_time: Optional[datetime]


@router.post("/run", response_model=TriggerScanResponse, status_code=202)
async def trigger_scan(
    request: Optional[TriggerScanRequest] = None,
    services: Services = Depends(get_services),
    _admin: None = Depends(require_admin_api_key),
):
    """Start an on-demand scan, or queue one if a pass is already running."""
    categories = request.categories if request else None
    already_running = services.orchestrator.is_running
    services.scheduler.run_now(categories)

    labels = [c.value for c in categories] if categories else None
    if already_running:
        return TriggerScanResponse(
            status="queued",
            message="A scan is already running; another pass will follow it",
            categories=labels,
        )
    return TriggerScanResponse(status="started", message="Scan started", categories=labels)


@router.put("/interval", response_model=IntervalResponse)
async def set_interval(
    request: IntervalRequest,
    services: Services = Depends(get_services),
    _admin: None = Depends(require_admin_api_key),
):
    """Change how often scheduled scans run."""
    try:
        minutes = services.scheduler.reconfigure(request.minutes)
    except InvalidIntervalError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Interval applied but not persisted: {e}")
        raise HTTPException(status_code=500, detail="Interval applied but could not be saved")

    return IntervalResponse(
        interval_minutes=minutes,
        next_run_time=services.scheduler.next_run_time(),
    )


@router.get("/status")
async def scan_status(services: Services = Depends(get_services)):
    """Current scan state, interval and last pass summary."""
    status = services.scheduler.status()
    status["sources"] = services.health.snapshot()
    return status
