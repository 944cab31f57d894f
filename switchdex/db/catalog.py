"""Tracked-entity catalog: built-in entries plus tenant-added repositories."""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from switchdex.config import settings
from switchdex.db.json_store import JsonFileStore
from switchdex.errors import DuplicateEntityError, OwnershipError, UnknownEntityError
from switchdex.models import Category, TrackedEntity

logger = logging.getLogger(__name__)

BUILTIN_CATALOG = Path(__file__).resolve().parent.parent / "data" / "catalog.json"

REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def load_builtin_catalog(path: Optional[str | Path] = None) -> List[TrackedEntity]:
    """
    Load built-in entities from a JSON list.

    Malformed entries are logged and skipped; owner tenants are ignored since
    built-in entities are always global.
    """
    path = Path(path or settings.catalog_path or BUILTIN_CATALOG)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning(f"Catalog not found: {path}")
        return []
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing catalog {path}: {e}")
        return []

    entities = []
    for item in raw if isinstance(raw, list) else []:
        try:
            entity = TrackedEntity.from_dict(item)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping catalog entry {item!r}: {e}")
            continue
        entity.owner_tenant = None
        entities.append(entity)
    return entities


def repository_entity_id(tenant_id: str, repo: str) -> str:
    return f"repo:{tenant_id}:{repo.lower()}"


class Catalog:
    """All tracked entities, in stable insertion order."""

    def __init__(
        self,
        data_dir: Optional[str | Path] = None,
        builtin: Optional[List[TrackedEntity]] = None,
    ):
        """
        Args:
            data_dir: Directory holding user-repositories.json
            builtin: Built-in entities (defaults to the bundled catalog file)
        """
        self._repos_file = JsonFileStore(
            Path(data_dir or settings.data_dir) / "user-repositories.json",
            default_factory=list,
        )
        self._entities: Dict[str, TrackedEntity] = {}

        for entity in load_builtin_catalog() if builtin is None else builtin:
            if entity.id in self._entities:
                logger.warning(f"Duplicate catalog id {entity.id}, keeping first")
                continue
            self._entities[entity.id] = entity

        for item in self._repos_file.load() or []:
            try:
                entity = TrackedEntity.from_dict(item)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping stored repository {item!r}: {e}")
                continue
            self._entities.setdefault(entity.id, entity)

        logger.info(f"Catalog loaded with {len(self._entities)} entities")

    def _save_repositories(self) -> None:
        self._repos_file.save([
            e.to_dict() for e in self._entities.values()
            if e.category is Category.USER_REPOSITORY and e.owner_tenant is not None
        ])

    def get(self, entity_id: str) -> Optional[TrackedEntity]:
        return self._entities.get(entity_id)

    def entities(self, category: Optional[Category] = None) -> List[TrackedEntity]:
        if category is None:
            return list(self._entities.values())
        return [e for e in self._entities.values() if e.category is category]

    def repositories_for(self, tenant_id: str) -> List[TrackedEntity]:
        return [
            e for e in self._entities.values()
            if e.category is Category.USER_REPOSITORY and e.owner_tenant == tenant_id
        ]

    def add_repository(self, tenant_id: str, repo: str, name: Optional[str] = None) -> TrackedEntity:
        """
        Start tracking a code-host repository for one tenant.

        Args:
            tenant_id: Tenant adding the repository
            repo: "owner/name"
            name: Display name (defaults to repo)

        Raises:
            ValueError: If repo is not "owner/name"
            DuplicateEntityError: If the tenant already tracks it
        """
        repo = repo.strip().strip("/")
        if not REPO_PATTERN.match(repo):
            raise ValueError(f"Repository must look like owner/name, got {repo!r}")

        entity_id = repository_entity_id(tenant_id, repo)
        if entity_id in self._entities:
            raise DuplicateEntityError(f"{repo} is already tracked for tenant {tenant_id}")

        entity = TrackedEntity(
            id=entity_id,
            category=Category.USER_REPOSITORY,
            name=name or repo,
            owner_tenant=tenant_id,
            sources={"github": repo},
        )
        self._entities[entity_id] = entity
        try:
            self._save_repositories()
        except Exception:
            del self._entities[entity_id]
            raise

        logger.info(f"Tenant {tenant_id} added repository {repo}")
        return entity

    def remove_repository(self, tenant_id: str, repo: str) -> TrackedEntity:
        """
        Stop tracking a repository. Only the tenant that added it may remove it.

        Raises:
            OwnershipError: If the repository is tracked only by other tenants
            UnknownEntityError: If nobody tracks it
        """
        repo = repo.strip().strip("/")
        entity = self._entities.get(repository_entity_id(tenant_id, repo))
        if entity is None:
            owned_elsewhere = any(
                e.category is Category.USER_REPOSITORY
                and (e.sources.get("github") or "").lower() == repo.lower()
                for e in self._entities.values()
            )
            if owned_elsewhere:
                raise OwnershipError(f"{repo} was added by another tenant")
            raise UnknownEntityError(f"{repo} is not tracked")
        return self.remove_entity(tenant_id, entity.id)

    def remove_entity(self, tenant_id: str, entity_id: str) -> TrackedEntity:
        """
        Remove a tenant-owned entity by id.

        Raises:
            UnknownEntityError: If no such entity exists
            OwnershipError: If the entity is built-in or owned by another tenant
        """
        entity = self._entities.get(entity_id)
        if entity is None:
            raise UnknownEntityError(f"{entity_id} is not tracked")
        if entity.owner_tenant != tenant_id:
            raise OwnershipError(f"Tenant {tenant_id} does not own {entity_id}")

        del self._entities[entity_id]
        try:
            self._save_repositories()
        except Exception:
            self._entities[entity_id] = entity
            raise

        logger.info(f"Tenant {tenant_id} removed {entity_id}")
        return entity
