"""Dynamic filtering for entity queries."""

from clinicore.filtering.criteria import FilterCriteria, FilterOperator, parse_filters
from clinicore.filtering.registry import EntityFieldRegistry, FieldAccessor
from clinicore.filtering.service import FilterService

__all__ = [
    "EntityFieldRegistry",
    "FieldAccessor",
    "FilterCriteria",
    "FilterOperator",
    "FilterService",
    "parse_filters",
]
