"""Source adapter registry."""

import logging
from typing import Dict, Iterable, List, Optional

from switchdex.ingest.base import BaseSource
from switchdex.models import TrackedEntity

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Registry mapping source names to adapter instances."""

    def __init__(self, sources: Optional[Iterable[BaseSource]] = None):
        self._sources: Dict[str, BaseSource] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: BaseSource) -> None:
        """
        Register a source adapter, replacing any adapter with the same name.

        Args:
            source: Adapter instance
        """
        if source.name in self._sources:
            logger.info(f"Replacing source adapter: {source.name}")
        self._sources[source.name] = source

    def get(self, name: str) -> Optional[BaseSource]:
        return self._sources.get(name)

    def list_sources(self) -> List[str]:
        """List all registered source names."""
        return list(self._sources.keys())

    def sources_for(self, entity: TrackedEntity) -> List[BaseSource]:
        """
        Adapters applicable to an entity, most authoritative first.

        Bindings naming an unregistered adapter are logged and skipped.
        """
        found = []
        for name in entity.sources:
            source = self._sources.get(name)
            if source is None:
                logger.warning(f"Entity {entity.id} references unknown source '{name}'")
                continue
            found.append(source)
        return sorted(found, key=lambda s: (s.priority, s.name))

    async def cleanup(self) -> None:
        """Close all adapter HTTP clients."""
        for name, source in self._sources.items():
            try:
                await source.close()
            except Exception as e:
                logger.error(f"Error closing source {name}: {e}")
