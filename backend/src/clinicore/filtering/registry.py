"""Per-entity registry of filterable, sortable fields."""

from dataclasses import dataclass
from typing import Any

from pydantic import ConfigDict, TypeAdapter, ValidationError
from sqlalchemy import Column, Table

from clinicore.core.errors import InvalidArgumentError
from clinicore.core.types import FieldType, get_field_type
from clinicore.metadata.loader import EntityModel, FieldDefinition, MetadataError

# Lax mode, with numbers accepted for text fields ("Value": 42 on a string field)
_COERCE_CONFIG = ConfigDict(coerce_numbers_to_str=True)


@dataclass(frozen=True)
class FieldAccessor:
    """Typed access to one field of an entity table."""

    field: FieldDefinition
    field_type: FieldType
    column: Column
    adapter: TypeAdapter

    @property
    def name(self) -> str:
        return self.field.name

    def supports(self, operator: str) -> bool:
        return operator in self.field_type.query_operators

    def coerce(self, value: Any) -> Any:
        """Convert a raw request value to the field's Python type.

        Raises:
            InvalidArgumentError: If the value cannot be converted
        """
        if value is None:
            return None
        try:
            return self.adapter.validate_python(value)
        except ValidationError as exc:
            raise InvalidArgumentError(
                f"Value {value!r} is not a valid {self.field_type.name} for field '{self.name}'"
            ) from exc


class EntityFieldRegistry:
    """Maps field names known only at runtime to typed column accessors.

    Built once per entity at startup, so a field declared in metadata but
    missing from the table fails immediately instead of on first request.
    """

    def __init__(self, entity: EntityModel, table: Table):
        self.entity = entity
        self._accessors: dict[str, FieldAccessor] = {}
        self._folded: dict[str, FieldAccessor] = {}

        for field in entity.fields:
            if field.name not in table.c:
                raise MetadataError(
                    f"Entity '{entity.name}' field '{field.name}' has no column in '{table.name}'"
                )
            field_type = get_field_type(field.type)
            accessor = FieldAccessor(
                field=field,
                field_type=field_type,
                column=table.c[field.name],
                adapter=TypeAdapter(field_type.python_type, config=_COERCE_CONFIG),
            )
            self._accessors[field.name] = accessor
            self._folded.setdefault(field.name.lower(), accessor)

        self.search_accessors = [self._accessors[name] for name in entity.search_fields]
        for accessor in self.search_accessors:
            if not accessor.field_type.is_text:
                raise MetadataError(
                    f"Entity '{entity.name}' search field '{accessor.name}' is not a text field"
                )

    def resolve(self, name: str) -> FieldAccessor:
        """Find a field by exact name, then case-insensitively.

        Raises:
            InvalidArgumentError: If the entity has no such field
        """
        accessor = self._accessors.get(name) or self._folded.get(name.lower())
        if accessor is None:
            raise InvalidArgumentError(
                f"'{name}' is not a field of {self.entity.name}"
            )
        return accessor

    @property
    def primary_key(self) -> FieldAccessor:
        return self._accessors[self.entity.primary_key]

    @property
    def search_columns(self) -> list[Column]:
        return [a.column for a in self.search_accessors]

    def __iter__(self):
        return iter(self._accessors.values())

    def __contains__(self, name: str) -> bool:
        return name in self._accessors
