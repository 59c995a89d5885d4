"""Field type registry with storage and query defaults."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Callable
from uuid import UUID

from pydantic import AfterValidator
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Numeric, String, Text, Uuid
from sqlalchemy.types import TypeDecorator, TypeEngine

# Operator names match FilterOperator values (clinicore.filtering.criteria)
EQUALITY_OPERATORS = ["Equal", "NotEqual"]
ORDERED_OPERATORS = EQUALITY_OPERATORS + [
    "GreaterThan",
    "GreaterThanOrEqual",
    "LessThan",
    "LessThanOrEqual",
]
TEXT_OPERATORS = EQUALITY_OPERATORS + ["Contains", "StartsWith", "EndsWith"]

CURRENCY_PRECISION = 18
CURRENCY_SCALE = 2


def _string(max_length: int | None) -> TypeEngine:
    return String(max_length or 255)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcTimestamp = Annotated[datetime, AfterValidator(as_utc)]


class UtcDateTime(TypeDecorator):
    """Timestamp column that always hands back aware UTC datetimes.

    SQLite has no offset storage, so values are written there as naive UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = as_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


@dataclass
class FieldType:
    """A storable, filterable field type.

    Attributes:
        name: Type name as written in entity YAML
        python_type: Type (or annotated type) that request and filter values coerce to
        column_type: Builds the SQLAlchemy column type (receives maxLength)
        query_operators: FilterCriteria operators the type supports
        is_text: Text types take part in free-text search
        value_constraints: Extra pydantic Field constraints for record values
    """

    name: str
    python_type: Any
    column_type: Callable[[int | None], TypeEngine]
    query_operators: list[str]
    is_text: bool = False
    value_constraints: dict[str, Any] = field(default_factory=dict)


# Built-in field types
FIELD_TYPES: dict[str, FieldType] = {
    "uuid": FieldType(
        name="uuid",
        python_type=UUID,
        column_type=lambda _: Uuid(),
        query_operators=EQUALITY_OPERATORS,
    ),
    "string": FieldType(
        name="string",
        python_type=str,
        column_type=_string,
        query_operators=TEXT_OPERATORS,
        is_text=True,
    ),
    "name": FieldType(
        name="name",
        python_type=str,
        column_type=_string,
        query_operators=TEXT_OPERATORS,
        is_text=True,
    ),
    "text": FieldType(
        name="text",
        python_type=str,
        column_type=lambda _: Text(),
        query_operators=TEXT_OPERATORS,
        is_text=True,
    ),
    "email": FieldType(
        name="email",
        python_type=str,
        column_type=_string,
        query_operators=TEXT_OPERATORS,
        is_text=True,
    ),
    "phone": FieldType(
        name="phone",
        python_type=str,
        column_type=lambda length: String(length or 32),
        query_operators=TEXT_OPERATORS,
        is_text=True,
    ),
    "integer": FieldType(
        name="integer",
        python_type=int,
        column_type=lambda _: Integer(),
        query_operators=ORDERED_OPERATORS,
    ),
    "number": FieldType(
        name="number",
        python_type=float,
        column_type=lambda _: Float(),
        query_operators=ORDERED_OPERATORS,
    ),
    "currency": FieldType(
        name="currency",
        python_type=Decimal,
        column_type=lambda _: Numeric(CURRENCY_PRECISION, CURRENCY_SCALE),
        query_operators=ORDERED_OPERATORS,
        value_constraints={"max_digits": CURRENCY_PRECISION, "decimal_places": CURRENCY_SCALE},
    ),
    "percent": FieldType(
        name="percent",
        python_type=float,
        column_type=lambda _: Float(),
        query_operators=ORDERED_OPERATORS,
    ),
    "boolean": FieldType(
        name="boolean",
        python_type=bool,
        column_type=lambda _: Boolean(),
        query_operators=EQUALITY_OPERATORS,
    ),
    "date": FieldType(
        name="date",
        python_type=date,
        column_type=lambda _: Date(),
        query_operators=ORDERED_OPERATORS,
    ),
    "datetime": FieldType(
        name="datetime",
        python_type=UtcTimestamp,
        column_type=lambda _: UtcDateTime(timezone=True),
        query_operators=ORDERED_OPERATORS,
    ),
    "relation": FieldType(
        name="relation",
        python_type=UUID,  # Foreign key to the related entity's uuid id
        column_type=lambda _: Uuid(),
        query_operators=EQUALITY_OPERATORS,
    ),
}


def is_known_type(type_name: str) -> bool:
    return type_name in FIELD_TYPES


def get_field_type(type_name: str) -> FieldType:
    """Get field type definition.

    Raises:
        KeyError: If the type is not registered. Metadata loading rejects
            unknown types up front, so this only fires on programming errors.
    """
    return FIELD_TYPES[type_name]
