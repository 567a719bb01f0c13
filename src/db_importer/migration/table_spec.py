"""Declarative description of one source table.

A ``TableSpec`` says where a table's rows come from, which target entity
type they become, how to recognise a record that already exists in the
target, how source field names translate to target field names and which
fields are foreign keys into other entity types.
"""

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from db_importer.client.base import Row, SourceLocation
from db_importer.client.exceptions import AttributeMappingCollisionError, ConfigurationError
from db_importer.entities import EntityRegistry, EntityType

if TYPE_CHECKING:
    from db_importer.config import ImporterConfig, TableConfig

# Field holding a row's identifier in the source system
ID_FIELD = "id"


class ForeignKeyStrategy(str, Enum):
    """Which source identifier a foreign key field is resolved with.

    OWN_ID looks the referenced record up by the importing row's own ``id``,
    which suits one-to-one companion tables that share identifiers with the
    table they extend. FIELD_VALUE looks it up by the value stored in the
    foreign key field itself.
    """

    OWN_ID = "own_id"
    FIELD_VALUE = "field_value"


@dataclass(frozen=True)
class TableSpec:
    """Import configuration for a single source table.

    Attributes:
        source: Database and table the rows are read from
        target_entity: Entity type rows are imported as; None marks a
            reference-only table that the engine skips
        natural_key_field: Source field used to find an existing target record
        field_mapping: Source field name -> target field name
        foreign_keys: Source field name -> entity type the value refers to
        fk_strategy: How foreign key fields are resolved
    """

    source: SourceLocation
    target_entity: EntityType | None = None
    natural_key_field: str | None = None
    field_mapping: Mapping[str, str] = field(default_factory=dict)
    foreign_keys: Mapping[str, EntityType] = field(default_factory=dict)
    fk_strategy: ForeignKeyStrategy = ForeignKeyStrategy.OWN_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "field_mapping", dict(self.field_mapping))
        object.__setattr__(self, "foreign_keys", dict(self.foreign_keys))
        object.__setattr__(self, "fk_strategy", ForeignKeyStrategy(self.fk_strategy))
        self._validate_field_mapping()

    def _validate_field_mapping(self) -> None:
        sources_by_target: dict[str, list[str]] = defaultdict(list)

        for source_field, target_field in self.field_mapping.items():
            if source_field == ID_FIELD:
                # The identifier is never copied, so its mapping is inert
                continue
            if target_field == ID_FIELD:
                raise ConfigurationError(
                    f"Field '{source_field}' in table {self.name} cannot be mapped "
                    f"onto the target identifier '{ID_FIELD}'"
                )
            sources_by_target[target_field].append(source_field)

        for target_field, source_fields in sources_by_target.items():
            if len(source_fields) > 1:
                raise AttributeMappingCollisionError(target_field, source_fields, table=self.name)

    @property
    def name(self) -> str:
        return str(self.source)

    @property
    def is_reference_only(self) -> bool:
        """True when the table has no target entity and is not imported."""
        return self.target_entity is None

    def map_field(self, field_name: str) -> str:
        """Return the target name of a source field."""
        return self.field_mapping.get(field_name) or field_name

    def mapped_natural_key_field(self) -> str | None:
        """Return the target-side name of the natural key field, if any."""
        if not self.natural_key_field:
            return None
        return self.map_field(self.natural_key_field)

    def map_attributes(self, row: Row) -> dict[str, Any]:
        """Translate a row into target attributes.

        Every field except ``id`` is copied under its mapped name.

        Args:
            row: Source row

        Returns:
            New dictionary of target field name -> value

        Raises:
            AttributeMappingCollisionError: If two row fields end up with the
                same target name
        """
        attributes: dict[str, Any] = {}
        origins: dict[str, str] = {}

        for source_field, value in row.items():
            if source_field == ID_FIELD:
                continue

            target_field = self.map_field(source_field)
            if target_field in attributes:
                raise AttributeMappingCollisionError(
                    target_field, [origins[target_field], source_field], table=self.name
                )

            attributes[target_field] = value
            origins[target_field] = source_field

        return attributes

    @classmethod
    def from_config(
        cls,
        table_config: "TableConfig",
        registry: EntityRegistry,
        default_strategy: ForeignKeyStrategy = ForeignKeyStrategy.OWN_ID,
    ) -> "TableSpec":
        """Build a spec from its configuration entry.

        Entity names are resolved through the registry, so an unregistered
        name fails here rather than during the import.

        Raises:
            UnknownEntityTypeError: If an entity name is not registered
            AttributeMappingCollisionError: If the field mapping collides
        """
        target_entity = registry.get(table_config.entity) if table_config.entity else None
        foreign_keys = {
            source_field: registry.get(entity_name)
            for source_field, entity_name in table_config.foreign_keys.items()
        }

        return cls(
            source=SourceLocation(table_config.database, table_config.table),
            target_entity=target_entity,
            natural_key_field=table_config.natural_key,
            field_mapping=table_config.fields,
            foreign_keys=foreign_keys,
            fk_strategy=table_config.fk_strategy or default_strategy,
        )


def build_registry(config: "ImporterConfig") -> EntityRegistry:
    """Register every entity type declared in the configuration."""
    return EntityRegistry(
        EntityType(name=entity.name, table=entity.table or entity.name, primary_key=entity.primary_key)
        for entity in config.entities
    )


def build_table_specs(
    config: "ImporterConfig",
    registry: EntityRegistry | None = None,
    only: list[str] | None = None,
) -> list[TableSpec]:
    """Build table specs in configured (import) order.

    Args:
        config: Loaded configuration
        registry: Entity registry (built from the configuration if omitted)
        only: Restrict to these source tables, given as ``table`` or
            ``database.table``; configured order is kept

    Returns:
        List of table specs
    """
    registry = registry or build_registry(config)
    default_strategy = ForeignKeyStrategy(config.import_options.fk_strategy)

    specs = [
        TableSpec.from_config(table_config, registry, default_strategy)
        for table_config in config.tables
    ]

    if only:
        wanted = set(only)
        unknown = wanted - {spec.source.table for spec in specs} - {spec.name for spec in specs}
        if unknown:
            raise ConfigurationError(f"Unknown tables: {', '.join(sorted(unknown))}")
        specs = [spec for spec in specs if spec.source.table in wanted or spec.name in wanted]

    return specs


def check_table_order(specs: list[TableSpec]) -> list[str]:
    """Find foreign keys that point at entity types imported later (or never).

    The engine never reorders tables; this only reports problems so they
    can be fixed in the configuration before a run fails on them.

    Args:
        specs: Table specs in import order

    Returns:
        Human-readable problem descriptions (empty when the order is fine)
    """
    problems = []
    imported: set[EntityType] = set()
    all_targets = {spec.target_entity for spec in specs if spec.target_entity is not None}

    for spec in specs:
        if spec.is_reference_only:
            continue

        for source_field, entity_type in spec.foreign_keys.items():
            if entity_type in imported:
                continue
            if entity_type in all_targets:
                problems.append(
                    f"{spec.name}.{source_field} references '{entity_type}' "
                    f"which is imported later"
                )
            else:
                problems.append(
                    f"{spec.name}.{source_field} references '{entity_type}' "
                    f"which no table imports"
                )

        imported.add(spec.target_entity)

    return problems
