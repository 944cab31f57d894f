"""Recipient channels and per-tenant notification settings."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from switchdex.config import settings
from switchdex.db.json_store import JsonFileStore
from switchdex.models import Category, RecipientChannel, TenantSettings

logger = logging.getLogger(__name__)


class TenantDirectory:
    """
    Channels and subscriptions, mutated by tenant administrators.

    ``announcement-channels.json`` holds a list of channel entries. Legacy
    entries are bare channel id strings with no tenant; they receive global
    announcements for every category.
    """

    def __init__(self, data_dir: Optional[str | Path] = None):
        base = Path(data_dir or settings.data_dir)
        self._channels_file = JsonFileStore(base / "announcement-channels.json", default_factory=list)
        self._settings_file = JsonFileStore(base / "tenant-settings.json")
        self._channels: List[RecipientChannel] = self._load_channels()
        self._settings: Dict[str, TenantSettings] = self._load_settings()

    def _load_channels(self) -> List[RecipientChannel]:
        raw = self._channels_file.load()
        if not isinstance(raw, list):
            return []
        channels = []
        for item in raw:
            if isinstance(item, (str, int)):
                channels.append(RecipientChannel(channel_id=str(item)))
            elif isinstance(item, dict) and item.get("channel_id"):
                tenant = item.get("tenant_id")
                channels.append(RecipientChannel(
                    channel_id=str(item["channel_id"]),
                    tenant_id=str(tenant) if tenant is not None else None,
                ))
        return channels

    def _load_settings(self) -> Dict[str, TenantSettings]:
        raw = self._settings_file.load()
        if not isinstance(raw, dict):
            return {}
        result = {}
        for tenant_id, data in raw.items():
            if not isinstance(data, dict):
                continue
            subs = data.get("subscriptions")
            result[str(tenant_id)] = TenantSettings(
                tenant_id=str(tenant_id),
                subscriptions=list(subs) if isinstance(subs, list) else None,
                mention_roles=dict(data.get("mention_roles") or {}),
            )
        return result

    def _save_channels(self) -> None:
        self._channels_file.save([
            {"channel_id": c.channel_id, "tenant_id": c.tenant_id} for c in self._channels
        ])

    def _save_settings(self) -> None:
        self._settings_file.save({
            tenant_id: {"subscriptions": s.subscriptions, "mention_roles": s.mention_roles}
            for tenant_id, s in self._settings.items()
        })

    def channels(self) -> List[RecipientChannel]:
        return list(self._channels)

    def channels_for_tenant(self, tenant_id: str) -> List[RecipientChannel]:
        return [c for c in self._channels if c.tenant_id == tenant_id]

    def settings_for(self, tenant_id: Optional[str]) -> TenantSettings:
        """Settings for a tenant; unknown tenants subscribe to everything."""
        if tenant_id is None:
            return TenantSettings(tenant_id="")
        return self._settings.get(tenant_id) or TenantSettings(tenant_id=tenant_id)

    def add_channel(self, channel_id: str, tenant_id: Optional[str]) -> RecipientChannel:
        """Register an announcement channel (idempotent)."""
        for existing in self._channels:
            if existing.channel_id == channel_id and existing.tenant_id == tenant_id:
                return existing
        channel = RecipientChannel(channel_id=channel_id, tenant_id=tenant_id)
        self._channels.append(channel)
        self._save_channels()
        logger.info(f"Added announcement channel {channel_id} for tenant {tenant_id}")
        return channel

    def remove_channel(self, channel_id: str, tenant_id: Optional[str]) -> bool:
        before = len(self._channels)
        self._channels = [
            c for c in self._channels
            if not (c.channel_id == channel_id and c.tenant_id == tenant_id)
        ]
        if len(self._channels) == before:
            return False
        self._save_channels()
        return True

    def update_settings(
        self,
        tenant_id: str,
        subscriptions: Optional[Iterable[str]] = None,
        mention_roles: Optional[Dict[str, str]] = None,
    ) -> TenantSettings:
        """
        Update a tenant's subscriptions and/or mention roles.

        Args:
            tenant_id: Tenant identifier
            subscriptions: Category values to subscribe to (None leaves unchanged)
            mention_roles: Category value -> role id (None leaves unchanged)

        Raises:
            ValueError: If an unknown category is named
        """
        current = self.settings_for(tenant_id)
        valid = {c.value for c in Category}

        if subscriptions is not None:
            subs = list(dict.fromkeys(subscriptions))
            unknown = [s for s in subs if s not in valid]
            if unknown:
                raise ValueError(f"Unknown categories: {', '.join(unknown)}")
            current.subscriptions = subs

        if mention_roles is not None:
            unknown = [k for k in mention_roles if k not in valid]
            if unknown:
                raise ValueError(f"Unknown categories: {', '.join(unknown)}")
            current.mention_roles = {k: str(v) for k, v in mention_roles.items() if v}

        self._settings[tenant_id] = current
        self._save_settings()
        return current
