"""Per-tenant repositories, channels and notification settings."""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from switchdex.api.deps import get_services, require_admin_api_key
from switchdex.errors import DuplicateEntityError, OwnershipError, PersistenceError, UnknownEntityError
from switchdex.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tenants/{tenant_id}",
    tags=["tenants"],
    dependencies=[Depends(require_admin_api_key)],
)


class RepositoryCreate(BaseModel):
    """Request model for tracking a repository."""
    repo: str
    name: Optional[str] = None


class RepositoryResponse(BaseModel):
    """Response model for a tracked repository."""
    id: str
    repo: str
    name: str
    current_version: Optional[str] = None


class SettingsUpdate(BaseModel):
    """Request model for tenant notification settings."""
    subscriptions: Optional[List[str]] = None
    mention_roles: Optional[Dict[str, str]] = None


class SettingsResponse(BaseModel):
    """Response model for tenant notification settings."""
    tenant_id: str
    subscriptions: Optional[List[str]]
    mention_roles: Dict[str, str]


class ChannelCreate(BaseModel):
    """Request model for registering an announcement channel."""
    channel_id: str


class ChannelResponse(BaseModel):
    """Response model for an announcement channel."""
    channel_id: str
    tenant_id: Optional[str]


def _repository_response(services: Services, entity) -> RepositoryResponse:
    return RepositoryResponse(
        id=entity.id,
        repo=entity.sources.get("github", ""),
        name=entity.name,
        current_version=services.store.read(entity).version,
    )


@router.get("/repositories", response_model=List[RepositoryResponse])
async def list_repositories(tenant_id: str, services: Services = Depends(get_services)):
    """Repositories this tenant tracks."""
    return [_repository_response(services, e) for e in services.catalog.repositories_for(tenant_id)]


@router.post("/repositories", response_model=RepositoryResponse, status_code=201)
async def add_repository(
    tenant_id: str,
    data: RepositoryCreate,
    services: Services = Depends(get_services),
):
    """Start tracking a repository's releases for this tenant."""
    try:
        entity = services.catalog.add_repository(tenant_id, data.repo, name=data.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateEntityError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Failed to save repository for {tenant_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not save repository")
    return _repository_response(services, entity)


@router.delete("/repositories/{owner}/{repo}", status_code=204)
async def remove_repository(
    tenant_id: str,
    owner: str,
    repo: str,
    services: Services = Depends(get_services),
):
    """Stop tracking a repository. Only the tenant that added it may remove it."""
    try:
        entity = services.catalog.remove_repository(tenant_id, f"{owner}/{repo}")
    except OwnershipError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except UnknownEntityError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Failed to remove repository for {tenant_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not save repositories")

    try:
        services.store.remove(entity)
    except PersistenceError as e:
        logger.warning(f"Stale version record left for {entity.id}: {e}")
    return None


@router.put("/settings", response_model=SettingsResponse)
async def update_settings(
    tenant_id: str,
    data: SettingsUpdate,
    services: Services = Depends(get_services),
):
    """Set category subscriptions and per-category mention roles."""
    try:
        updated = services.tenants.update_settings(
            tenant_id,
            subscriptions=data.subscriptions,
            mention_roles=data.mention_roles,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Failed to save settings for {tenant_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not save settings")

    return SettingsResponse(
        tenant_id=updated.tenant_id,
        subscriptions=updated.subscriptions,
        mention_roles=updated.mention_roles,
    )


@router.get("/channels", response_model=List[ChannelResponse])
async def list_channels(tenant_id: str, services: Services = Depends(get_services)):
    """Announcement channels registered by this tenant."""
    return [
        ChannelResponse(channel_id=c.channel_id, tenant_id=c.tenant_id)
        for c in services.tenants.channels_for_tenant(tenant_id)
    ]


@router.post("/channels", response_model=ChannelResponse, status_code=201)
async def add_channel(
    tenant_id: str,
    data: ChannelCreate,
    services: Services = Depends(get_services),
):
    """Register an announcement channel for this tenant."""
    try:
        channel = services.tenants.add_channel(data.channel_id, tenant_id)
    except PersistenceError as e:
        logger.error(f"Failed to save channel for {tenant_id}: {e}")
        raise HTTPException(status_code=500, detail="Could not save channel")
    return ChannelResponse(channel_id=channel.channel_id, tenant_id=channel.tenant_id)


@router.delete("/channels/{channel_id}", status_code=204)
async def remove_channel(
    tenant_id: str,
    channel_id: str,
    services: Services = Depends(get_services),
):
    """Unregister an announcement channel."""
    if not services.tenants.remove_channel(channel_id, tenant_id):
        raise HTTPException(status_code=404, detail="Channel not registered")
    return None
