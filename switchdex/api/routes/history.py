"""Update history API endpoints."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from switchdex.api.deps import get_services
from switchdex.services import Services

router = APIRouter(prefix="/api/history", tags=["history"])


class NotificationEventResponse(BaseModel):
    """Response model for one announced update."""
    entity_id: str
    entity_name: str
    from_version: Optional[str]
    to_version: str
    category: str
    sources: List[str]
    detected_at: datetime
    scope: str
    delivered: int
    failed: int


@router.get("", response_model=List[NotificationEventResponse])
async def list_history(
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """Most recent announced updates, newest first."""
    events = services.history.recent()
    if category:
        events = [e for e in events if e.category == category]
    return [e.to_dict() for e in events[:limit]]


@router.get("/stats")
async def history_stats(services: Services = Depends(get_services)):
    """Aggregate update and delivery counts."""
    return services.stats.snapshot()
