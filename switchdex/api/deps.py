"""FastAPI dependencies."""

import secrets

from fastapi import Header, HTTPException, Request, status

from switchdex.config import settings
from switchdex.services import Services


def get_services(request: Request) -> Services:
    """Engine components built during app startup."""
    return request.app.state.services


async def require_admin_api_key(
    x_admin_api_key: str = Header(..., alias="X-Admin-API-Key")
) -> None:
    """
    Guard for operator and tenant-management endpoints.

    A missing header is rejected by FastAPI's validation (422).

    Raises:
        HTTPException: 503 when the service has no admin key set, 403 on mismatch
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured"
        )

    if not secrets.compare_digest(x_admin_api_key.encode(), settings.admin_api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )
