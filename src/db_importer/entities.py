"""Registered entity types - the tokens shared by specs, mappings and stores.

An entity type names a kind of record in the target database (a table).
Every table spec, every identity mapping and every target store call refers
to entity types through an ``EntityRegistry``, so a misspelled name fails
when the configuration is built rather than halfway through an import.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from db_importer.client.exceptions import ConfigurationError, UnknownEntityTypeError


@dataclass(frozen=True)
class EntityType:
    """A kind of target record.

    Attributes:
        name: Token used in configuration and logs (e.g. "users")
        table: Target table holding records of this type
        primary_key: Column holding the store-assigned identifier
    """

    name: str
    table: str = ""
    primary_key: str = "id"

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Entity type name cannot be empty")
        if not self.table:
            # Frozen dataclass: assign through object.__setattr__
            object.__setattr__(self, "table", self.name)

    def __str__(self) -> str:
        return self.name


class EntityRegistry:
    """Registry of the entity types an import run may reference."""

    def __init__(self, entity_types: Iterable[EntityType] = ()):
        self._types: dict[str, EntityType] = {}
        for entity_type in entity_types:
            self.register(entity_type)

    def register(self, entity_type: EntityType) -> EntityType:
        """Register an entity type.

        Registering an identical definition twice is allowed.

        Args:
            entity_type: Entity type to register

        Returns:
            The registered entity type

        Raises:
            ConfigurationError: If the name is already registered differently
        """
        existing = self._types.get(entity_type.name)
        if existing is not None and existing != entity_type:
            raise ConfigurationError(
                f"Entity type '{entity_type.name}' is already registered "
                f"with table '{existing.table}'"
            )
        self._types[entity_type.name] = entity_type
        return entity_type

    def get(self, name: str) -> EntityType:
        """Look up a registered entity type by name.

        Raises:
            UnknownEntityTypeError: If no entity type has that name
        """
        try:
            return self._types[name]
        except KeyError:
            raise UnknownEntityTypeError(name, list(self._types)) from None

    def names(self) -> list[str]:
        return list(self._types)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, EntityType):
            return self._types.get(item.name) == item
        return item in self._types

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
