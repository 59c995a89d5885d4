"""Load and resolve entity metadata from YAML files."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from clinicore.auth.permissions import ROLE_HIERARCHY
from clinicore.core.types import get_field_type, is_known_type

logger = logging.getLogger(__name__)

ON_DELETE_ACTIONS = ("restrict", "cascade", "setNull")


class MetadataError(ValueError):
    """Raised when entity metadata is inconsistent."""

    pass


@dataclass
class ValidationRules:
    required: bool = False
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None


@dataclass
class RelationConfig:
    """Configuration for a relation field."""

    entity: str  # The related entity name
    include: str  # Key the related record is embedded under
    on_delete: str = "restrict"  # "restrict" | "cascade" | "setNull"


@dataclass
class FieldDefinition:
    name: str
    type: str
    display_name: str
    primary_key: bool = False
    validation: ValidationRules = field(default_factory=ValidationRules)
    relation: RelationConfig | None = None

    @property
    def required(self) -> bool:
        return self.primary_key or self.validation.required


@dataclass
class EntityPermissions:
    """Minimum role per entitlement."""

    read: str = "readonly"
    create: str = "user"
    update: str = "user"
    delete: str = "manager"


@dataclass
class EntityModel:
    name: str
    display_name: str
    plural_name: str
    route: str
    primary_key: str
    fields: list[FieldDefinition]
    search_fields: list[str] = field(default_factory=list)
    permissions: EntityPermissions = field(default_factory=EntityPermissions)

    def get_field(self, name: str) -> FieldDefinition | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def relation_fields(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.relation is not None]


class MetadataLoader:
    """Loads entity definitions from YAML files."""

    def __init__(self, metadata_path: Path):
        self.metadata_path = metadata_path
        self.entities: dict[str, EntityModel] = {}
        self._routes: dict[str, str] = {}  # route -> entity name

    def load_all(self) -> None:
        """Load all entities and run the startup consistency checks."""
        self._load_entities()
        self._validate_relations()
        self._validate_routes()
        logger.info(
            "Loaded %d entities from %s", len(self.entities), self.metadata_path
        )

    def _load_entities(self) -> None:
        """Load entity definitions."""
        entities_path = self.metadata_path / "entities"
        if not entities_path.is_dir():
            raise MetadataError(f"Entity metadata directory not found: {entities_path}")

        for yaml_file in sorted(entities_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if not data or "entity" not in data:
                logger.warning("Skipping %s: no 'entity' key", yaml_file.name)
                continue
            entity = self._resolve_entity(data)
            if entity.name in self.entities:
                raise MetadataError(f"Entity '{entity.name}' is declared twice")
            self.entities[entity.name] = entity

    def _resolve_entity(self, data: dict) -> EntityModel:
        """Resolve an entity definition."""
        name = data["entity"]

        fields = [self._resolve_field(name, f) for f in data.get("fields", [])]

        seen: set[str] = set()
        for f in fields:
            if f.name in seen:
                raise MetadataError(f"Entity '{name}' declares field '{f.name}' twice")
            seen.add(f.name)

        # Exactly one uuid primary key
        pk_fields = [f for f in fields if f.primary_key]
        if len(pk_fields) != 1:
            raise MetadataError(
                f"Entity '{name}' must declare exactly one primary key, found {len(pk_fields)}"
            )
        primary_key = pk_fields[0]
        if primary_key.type != "uuid":
            raise MetadataError(
                f"Entity '{name}' primary key '{primary_key.name}' must be of type uuid"
            )

        # Search fields: explicit list, or every text field
        search_fields = data.get("search")
        if search_fields is None:
            search_fields = [f.name for f in fields if get_field_type(f.type).is_text]
        for search_field in search_fields:
            field_def = next((f for f in fields if f.name == search_field), None)
            if field_def is None:
                raise MetadataError(
                    f"Entity '{name}' search field '{search_field}' is not declared"
                )
            if not get_field_type(field_def.type).is_text:
                raise MetadataError(
                    f"Entity '{name}' search field '{search_field}' is not a text field"
                )

        return EntityModel(
            name=name,
            display_name=data.get("displayName", name),
            plural_name=data.get("pluralName", name + "s"),
            route=data.get("route", name.lower()),
            primary_key=primary_key.name,
            fields=fields,
            search_fields=list(search_fields),
            permissions=self._resolve_permissions(name, data.get("permissions")),
        )

    def _resolve_field(self, entity_name: str, data: dict) -> FieldDefinition:
        """Convert field dict to FieldDefinition."""
        name = data["name"]
        field_type = data.get("type", "string")
        if not is_known_type(field_type):
            raise MetadataError(
                f"Field '{entity_name}.{name}' has unknown type '{field_type}'"
            )

        validation_data = data.get("validation", {})
        validation = ValidationRules(
            required=validation_data.get("required", False),
            min=validation_data.get("min"),
            max=validation_data.get("max"),
            min_length=validation_data.get("minLength"),
            max_length=validation_data.get("maxLength"),
            pattern=validation_data.get("pattern"),
        )

        relation = None
        relation_data = data.get("relation")
        if field_type == "relation":
            if not relation_data or not relation_data.get("entity"):
                raise MetadataError(
                    f"Relation field '{entity_name}.{name}' must name a related entity"
                )
            on_delete = relation_data.get("onDelete", "restrict")
            if on_delete not in ON_DELETE_ACTIONS:
                raise MetadataError(
                    f"Relation field '{entity_name}.{name}' has invalid onDelete '{on_delete}'"
                )
            relation = RelationConfig(
                entity=relation_data["entity"],
                include=relation_data.get("include", self._default_include(name)),
                on_delete=on_delete,
            )

        return FieldDefinition(
            name=name,
            type=field_type,
            display_name=data.get("displayName", self._to_display_name(name)),
            primary_key=data.get("primaryKey", False),
            validation=validation,
            relation=relation,
        )

    def _resolve_permissions(self, entity_name: str, data: dict | None) -> EntityPermissions:
        access = (data or {}).get("access", {})
        permissions = EntityPermissions(
            read=access.get("read", "readonly"),
            create=access.get("create", "user"),
            update=access.get("update", "user"),
            delete=access.get("delete", "manager"),
        )
        for operation in ("read", "create", "update", "delete"):
            role = getattr(permissions, operation)
            if role not in ROLE_HIERARCHY:
                raise MetadataError(
                    f"Entity '{entity_name}' requires unknown role '{role}' to {operation}"
                )
        return permissions

    def _validate_relations(self) -> None:
        """Every relation must point at a declared entity."""
        for entity in self.entities.values():
            for f in entity.relation_fields:
                if f.relation.entity not in self.entities:
                    raise MetadataError(
                        f"Relation '{entity.name}.{f.name}' targets unknown entity "
                        f"'{f.relation.entity}'"
                    )
                if entity.get_field(f.relation.include) is not None:
                    raise MetadataError(
                        f"Relation '{entity.name}.{f.name}' include name "
                        f"'{f.relation.include}' collides with a field"
                    )
                if f.relation.on_delete == "setNull" and f.validation.required:
                    raise MetadataError(
                        f"Relation '{entity.name}.{f.name}' is required and cannot use setNull"
                    )

    def _validate_routes(self) -> None:
        self._routes = {}
        for entity in self.entities.values():
            if entity.route in self._routes:
                raise MetadataError(
                    f"Route '{entity.route}' is used by both "
                    f"'{self._routes[entity.route]}' and '{entity.name}'"
                )
            self._routes[entity.route] = entity.name

    def _default_include(self, field_name: str) -> str:
        """patientId -> patient"""
        if field_name.endswith("Id") and len(field_name) > 2:
            return field_name[:-2]
        return field_name + "Record"

    def _to_display_name(self, name: str) -> str:
        """Convert camelCase to Title Case."""
        result = []
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                result.append(" ")
            result.append(char)
        return "".join(result).title()

    def get_entity(self, name: str) -> EntityModel | None:
        """Get a resolved entity by name."""
        return self.entities.get(name)

    def get_entity_by_route(self, route: str) -> EntityModel | None:
        name = self._routes.get(route)
        return self.entities.get(name) if name else None

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return list(self.entities.keys())
