"""Entity registry: one Entity per canonical path for a report build."""

import logging
import posixpath
from typing import Any

from ..models.entity import Entity, entity_id_for
from ..models.enums import EntityType

logger = logging.getLogger(__name__)


class EntityRegistry:
    """Deduplicates and caches Entity records by canonical path.

    The registry is owned by the ingestion loop; adapters running
    concurrently reach it only through that loop, so it needs no lock.
    """

    def __init__(self) -> None:
        self._entities: dict[str, Entity] = {}
        self._observed: dict[str, set[tuple[str, str]]] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, canonical_path: object) -> bool:
        return canonical_path in self._entities

    def get(self, canonical_path: str) -> Entity | None:
        return self._entities.get(canonical_path)

    def get_or_create(
        self,
        canonical_path: str,
        entity_type: EntityType | str = EntityType.FILE,
        name: str | None = None,
        tool_name: str = "unknown",
        original_identifier: str | None = None,
        confidence: float = 1.0,
        flags: dict[str, bool] | None = None,
    ) -> Entity:
        """Return the entity for canonical_path, creating it on first use.

        Repeated calls merge into the same entity independently of call
        order: the smallest (original_identifier, tool_name) pair and name
        are kept, confidence is the highest seen and flags are OR-ed. When
        calls disagree on the type, the more specific type wins (project >
        application > file > dependency > system) and every observed
        (type, tool) pair is listed, sorted, under metadata typeConflicts.
        """
        entity_type = EntityType(entity_type)
        original_identifier = original_identifier or canonical_path
        name = name or posixpath.basename(canonical_path) or canonical_path
        observed = self._observed.setdefault(canonical_path, set())
        observed.add((entity_type.value, tool_name))

        existing = self._entities.get(canonical_path)
        if existing is None:
            entity = Entity(
                id=entity_id_for(canonical_path),
                type=entity_type,
                name=name,
                canonical_path=canonical_path,
                original_identifier=original_identifier,
                tool_name=tool_name,
                confidence=confidence,
                metadata=dict(flags or {}),
            )
            self._entities[canonical_path] = entity
            return entity

        update: dict[str, Any] = {}
        if (original_identifier, tool_name) < (existing.original_identifier, existing.tool_name):
            update["original_identifier"] = original_identifier
            update["tool_name"] = tool_name
        if name < existing.name:
            update["name"] = name
        if confidence > existing.confidence:
            update["confidence"] = confidence

        metadata = dict(existing.metadata)
        for flag, value in (flags or {}).items():
            metadata[flag] = bool(metadata.get(flag)) or value

        if entity_type.specificity > existing.type.specificity:
            update["type"] = entity_type
            logger.debug(
                f"Entity {canonical_path} upgraded from {existing.type.value} to {entity_type.value}",
                extra={"event": "entity_type_conflict", "canonical_path": canonical_path},
            )
        if len({type_name for type_name, _ in observed}) > 1:
            metadata["typeConflicts"] = [
                {"type": type_name, "toolName": tool} for type_name, tool in sorted(observed)
            ]

        if metadata != existing.metadata:
            update["metadata"] = metadata
        if not update:
            return existing

        updated = existing.model_copy(update=update)
        self._entities[canonical_path] = updated
        return updated

    def entities(self) -> list[Entity]:
        """All entities sorted by id."""
        return sorted(self._entities.values(), key=lambda e: e.id)
