"""Apply FilterCriteria and a free-text search term to a query."""

import operator
from collections.abc import Sequence

from sqlalchemy import Select, and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from clinicore.core.errors import InvalidArgumentError
from clinicore.filtering.criteria import FilterCriteria, FilterOperator
from clinicore.filtering.registry import EntityFieldRegistry, FieldAccessor

_COMPARISONS = {
    FilterOperator.EQUAL: operator.eq,
    FilterOperator.NOT_EQUAL: operator.ne,
    FilterOperator.GREATER_THAN: operator.gt,
    FilterOperator.GREATER_THAN_OR_EQUAL: operator.ge,
    FilterOperator.LESS_THAN: operator.lt,
    FilterOperator.LESS_THAN_OR_EQUAL: operator.le,
}


class FilterService:
    """Builds WHERE clauses from request filters.

    Every criterion and the search term are ANDed together. The input
    query is never modified; a filtered copy is returned.
    """

    def apply_filter(
        self,
        query: Select,
        registry: EntityFieldRegistry,
        filters: Sequence[FilterCriteria] | None = None,
        search_term: str | None = None,
    ) -> Select:
        conditions = [self.build_predicate(registry, criteria) for criteria in filters or ()]
        if search_term:
            conditions.append(self.build_search(registry, search_term))

        if not conditions:
            return query
        return query.where(and_(*conditions))

    def build_predicate(
        self, registry: EntityFieldRegistry, criteria: FilterCriteria
    ) -> ColumnElement[bool]:
        """Translate one criterion into a typed comparison.

        Raises:
            InvalidArgumentError: Unknown field, an operator the field type
                does not support, or a value that does not coerce
        """
        accessor = registry.resolve(criteria.property_name)
        op = criteria.operator
        if not accessor.supports(op.value):
            raise InvalidArgumentError(
                f"Operator '{op.value}' is not supported for {accessor.field_type.name} "
                f"field '{accessor.name}'"
            )

        value = accessor.coerce(criteria.value)

        if value is None:
            return self._null_predicate(accessor, op)

        column = accessor.column
        if op == FilterOperator.CONTAINS:
            return column.icontains(value, autoescape=True)
        if op == FilterOperator.STARTS_WITH:
            return column.istartswith(value, autoescape=True)
        if op == FilterOperator.ENDS_WITH:
            return column.iendswith(value, autoescape=True)
        return _COMPARISONS[op](column, value)

    def build_search(
        self, registry: EntityFieldRegistry, search_term: str
    ) -> ColumnElement[bool]:
        """Any search field contains the term, case-insensitively."""
        columns = registry.search_columns
        if not columns:
            return false()
        return or_(*(column.icontains(search_term, autoescape=True) for column in columns))

    def _null_predicate(self, accessor: FieldAccessor, op: FilterOperator) -> ColumnElement[bool]:
        if op == FilterOperator.EQUAL:
            return accessor.column.is_(None)
        if op == FilterOperator.NOT_EQUAL:
            return accessor.column.is_not(None)
        raise InvalidArgumentError(
            f"Operator '{op.value}' on field '{accessor.name}' requires a value"
        )
