"""Source-to-target identifier mapping for a single import run."""

from collections.abc import Iterator
from typing import Any

from db_importer.client.exceptions import (
    IdentifierNotFoundError,
    MappingConflictError,
    MappingNotFoundError,
)
from db_importer.entities import EntityType
from db_importer.utils.logging import get_logger

logger = get_logger(__name__)


class IdentityMapper:
    """
    Remembers which target record each imported source row became.

    Mappings are kept per entity type and are append-only: once a source
    row has been mapped, the mapping cannot be changed for the rest of the
    run. A new mapper is created for every run.

    Usage:
        identity = IdentityMapper()
        identity.record(users, source_id=1, target_id=42)
        identity.resolve(users, 1)  # -> 42
    """

    def __init__(self) -> None:
        self._mappings: dict[EntityType, dict[Any, Any]] = {}
        self._order: list[tuple[EntityType, Any]] = []

    def record(self, entity_type: EntityType, source_id: Any, target_id: Any) -> None:
        """
        Store the target identifier assigned to a source row.

        Recording the same mapping twice is a no-op.

        Args:
            entity_type: Entity type the row was imported as
            source_id: Row identifier in the source table
            target_id: Identifier of the created or matched target record

        Raises:
            MappingConflictError: If the source row is already mapped to a
                different target record
        """
        by_source = self._mappings.setdefault(entity_type, {})

        if source_id in by_source:
            existing = by_source[source_id]
            if existing != target_id:
                raise MappingConflictError(
                    f"{entity_type} source ID {source_id} is already mapped to "
                    f"{existing}, refusing to remap it to {target_id}",
                    source_id=source_id,
                )
            return

        by_source[source_id] = target_id
        self._order.append((entity_type, source_id))

        logger.debug(
            "id_mapping_recorded",
            entity_type=entity_type.name,
            source_id=source_id,
            target_id=target_id,
        )

    def resolve(self, entity_type: EntityType, source_id: Any) -> Any:
        """
        Get the target identifier for a source row.

        Args:
            entity_type: Entity type the row was imported as
            source_id: Row identifier in the source table

        Returns:
            Target record identifier

        Raises:
            MappingNotFoundError: If no row of this entity type has been imported
            IdentifierNotFoundError: If this particular row has not been imported
        """
        if entity_type not in self._mappings:
            raise MappingNotFoundError(
                f"Entity type does not have mapped IDs: {entity_type}",
                entity_type=entity_type.name,
            )

        by_source = self._mappings[entity_type]
        if source_id not in by_source:
            raise IdentifierNotFoundError(
                f"Mapped ID does not exist for {entity_type} source ID {source_id}",
                entity_type=entity_type.name,
            )

        return by_source[source_id]

    def has_entity_type(self, entity_type: EntityType) -> bool:
        return entity_type in self._mappings

    def count(self, entity_type: EntityType | None = None) -> int:
        """Number of recorded mappings, optionally for one entity type."""
        if entity_type is not None:
            return len(self._mappings.get(entity_type, {}))
        return len(self._order)

    def entries(self) -> Iterator[tuple[EntityType, Any, Any]]:
        """Yield ``(entity_type, source_id, target_id)`` in recording order."""
        for entity_type, source_id in self._order:
            yield entity_type, source_id, self._mappings[entity_type][source_id]

    def as_dict(self) -> dict[str, dict[str, Any]]:
        """Snapshot keyed by entity name, suitable for JSON output."""
        return {
            entity_type.name: {str(source_id): target_id for source_id, target_id in by_source.items()}
            for entity_type, by_source in self._mappings.items()
        }

    def __len__(self) -> int:
        return len(self._order)
