"""Pydantic record models generated from entity metadata."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model

from clinicore.core.types import FieldType, get_field_type
from clinicore.metadata.loader import EntityModel, FieldDefinition

_NUMERIC_TYPES = (int, float, Decimal)


def _field_constraints(field: FieldDefinition, field_type: FieldType) -> dict[str, Any]:
    rules = field.validation
    python_type = field_type.python_type
    constraints: dict[str, Any] = dict(field_type.value_constraints)
    if python_type in _NUMERIC_TYPES:
        if rules.min is not None:
            constraints["ge"] = rules.min
        if rules.max is not None:
            constraints["le"] = rules.max
    if python_type is str:
        if rules.min_length is not None:
            constraints["min_length"] = rules.min_length
        if rules.max_length is not None:
            constraints["max_length"] = rules.max_length
        if rules.pattern:
            constraints["pattern"] = rules.pattern
    return constraints


def build_record_model(entity: EntityModel) -> type[BaseModel]:
    """Create the request/record model for an entity.

    The primary key is optional (create generates one). Other required
    fields must be present and non-null; optional fields default to None.
    Unknown keys, including embedded related records, are ignored.
    Currency values are limited to the column precision and datetimes are
    normalised to UTC, so a stored record reads back exactly as validated.
    """
    definitions: dict[str, Any] = {}
    for field in entity.fields:
        field_type = get_field_type(field.type)
        python_type = field_type.python_type
        constraints = _field_constraints(field, field_type)
        if field.required and not field.primary_key:
            definitions[field.name] = (
                python_type,
                Field(..., title=field.display_name, **constraints),
            )
        else:
            definitions[field.name] = (
                python_type | None,
                Field(None, title=field.display_name, **constraints),
            )

    return create_model(
        f"{entity.name}Record",
        __config__=ConfigDict(extra="ignore", coerce_numbers_to_str=True),
        **definitions,
    )
