"""Fan-out of version changes to the right recipient channels."""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from switchdex.db.history import HistoryLog, UpdateStats
from switchdex.db.tenants import TenantDirectory
from switchdex.models import (
    ConsensusResult,
    NotificationEvent,
    RecipientChannel,
    TrackedEntity,
    utc_now,
)
from switchdex.notify.discord import MessageSender
from switchdex.notify.formatters import format_update_message
from switchdex import metrics

logger = logging.getLogger(__name__)


class NotificationRouter:
    """
    Selects the audience for a change and delivers it.

    Tenant-owned entities only reach their owner's channels. Global entities
    reach every channel whose tenant subscribes to the entity's category;
    legacy channels (no tenant) receive all global announcements.
    """

    def __init__(
        self,
        tenants: TenantDirectory,
        sender: MessageSender,
        history: Optional[HistoryLog] = None,
        stats: Optional[UpdateStats] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.tenants = tenants
        self.sender = sender
        self.history = history
        self.stats = stats
        self._clock = clock

    def audience(self, entity: TrackedEntity) -> List[RecipientChannel]:
        """Channels eligible to hear about a change to this entity."""
        if not entity.is_global:
            return self.tenants.channels_for_tenant(entity.owner_tenant)

        eligible = []
        for channel in self.tenants.channels():
            if channel.tenant_id is None:
                eligible.append(channel)
                continue
            if self.tenants.settings_for(channel.tenant_id).subscribes_to(entity.category):
                eligible.append(channel)
        return eligible

    async def notify(
        self,
        entity: TrackedEntity,
        from_version: Optional[str],
        to_version: str,
        consensus: Optional[ConsensusResult] = None,
    ) -> NotificationEvent:
        """
        Announce a committed version change.

        Args:
            entity: Entity that changed
            from_version: Previously stored version
            to_version: Newly committed version
            consensus: Resolver output for message detail

        Returns:
            The recorded NotificationEvent with delivery tallies
        """
        delivered = 0
        failed = 0

        for channel in self.audience(entity):
            tenant_settings = self.tenants.settings_for(channel.tenant_id)
            role = tenant_settings.mention_roles.get(entity.category.value)
            content = format_update_message(entity, from_version, to_version, consensus, role)

            try:
                ok = await self.sender.send(channel.channel_id, content)
            except Exception as e:
                logger.error(f"Delivery to channel {channel.channel_id} raised: {e}", exc_info=True)
                ok = False

            if ok:
                delivered += 1
            else:
                failed += 1
                logger.warning(f"Failed to announce {entity.id} to channel {channel.channel_id}")
            metrics.record_notification(entity.category.value, ok)

        event = NotificationEvent(
            entity_id=entity.id,
            entity_name=entity.name,
            from_version=from_version,
            to_version=to_version,
            category=entity.category.value,
            sources=list(consensus.sources) if consensus else [],
            detected_at=self._clock(),
            scope="global" if entity.is_global else entity.owner_tenant,
            delivered=delivered,
            failed=failed,
        )

        # History and stats are informational; a write failure there must not
        # turn a delivered announcement into a failed entity.
        if self.history is not None:
            try:
                self.history.append(event)
            except Exception as e:
                logger.error(f"Failed to append history for {entity.id}: {e}")
        if self.stats is not None:
            try:
                self.stats.record(event)
            except Exception as e:
                logger.error(f"Failed to update stats for {entity.id}: {e}")

        logger.info(
            f"Announced {entity.id} {from_version} -> {to_version}: "
            f"{delivered} delivered, {failed} failed"
        )
        return event
