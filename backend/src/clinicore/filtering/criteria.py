"""FilterCriteria: one declarative predicate parsed from a request."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from clinicore.core.errors import InvalidArgumentError


class FilterOperator(str, Enum):
    EQUAL = "Equal"
    NOT_EQUAL = "NotEqual"
    GREATER_THAN = "GreaterThan"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqual"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUAL = "LessThanOrEqual"
    CONTAINS = "Contains"
    STARTS_WITH = "StartsWith"
    ENDS_WITH = "EndsWith"


class FilterCriteria(BaseModel):
    """A single predicate: ``PropertyName <Operator> Value``.

    Wire names are PascalCase; snake_case names are accepted too so
    criteria can be built directly in Python.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    property_name: str = Field(alias="PropertyName", min_length=1)
    operator: FilterOperator = Field(alias="Operator")
    value: Any = Field(default=None, alias="Value")


_FILTER_LIST = TypeAdapter(list[FilterCriteria])


def parse_filters(raw: str | None) -> list[FilterCriteria]:
    """Decode the ``filters`` query parameter (a JSON array).

    Raises:
        InvalidArgumentError: Malformed JSON or an element of the wrong shape
    """
    if raw is None or not raw.strip():
        return []
    try:
        return _FILTER_LIST.validate_json(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        detail = f"{location}: {first['msg']}" if location else first["msg"]
        raise InvalidArgumentError(f"Invalid filters: {detail}") from exc
