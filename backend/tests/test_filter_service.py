"""Tests for FilterCriteria parsing, the field registry and FilterService."""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import MetaData

from clinicore.core.errors import InvalidArgumentError
from clinicore.filtering import (
    EntityFieldRegistry,
    FilterCriteria,
    FilterOperator,
    FilterService,
    parse_filters,
)
from clinicore.metadata.loader import EntityModel, FieldDefinition, MetadataError
from clinicore.persistence.schema import build_table


def criteria(name, op, value=None) -> FilterCriteria:
    return FilterCriteria(property_name=name, operator=op, value=value)


@pytest.fixture
def medication(loader):
    return loader.get_entity("Medication")


@pytest.fixture
def registry(medication, database):
    return EntityFieldRegistry(medication, database.tables["Medication"])


@pytest.fixture
def seeded(ctx, medication):
    rows = [
        {
            "id": uuid.uuid4(),
            "name": "Amoxicillin",
            "genericName": "amoxicillin",
            "form": "capsule",
            "unitPrice": Decimal("4.50"),
            "expiryDate": date(2027, 1, 1),
            "isActive": True,
        },
        {
            "id": uuid.uuid4(),
            "name": "Ibuprofen",
            "genericName": "ibuprofen",
            "form": "tablet",
            "unitPrice": Decimal("2.00"),
            "expiryDate": date(2026, 6, 1),
            "isActive": True,
        },
        {
            "id": uuid.uuid4(),
            "name": "Paracetamol 100%",
            "genericName": "acetaminophen",
            "form": "tablet",
            "unitPrice": Decimal("1.25"),
            "expiryDate": date(2025, 12, 31),
            "isActive": False,
        },
    ]
    for row in rows:
        ctx.add(medication, row)
    ctx.save_changes()
    return rows


@pytest.fixture
def run(ctx, medication, registry):
    """Apply filters to the Medication query and return matching names."""
    service = FilterService()

    def _run(filters=None, search_term=None):
        query = service.apply_filter(ctx.query(medication), registry, filters, search_term)
        return sorted(r["name"] for r in ctx.fetch_all(query))

    return _run


# ── parse_filters ────────────────────────────────────────────────────────────


class TestParseFilters:
    def test_wire_names(self):
        result = parse_filters('[{"PropertyName": "name", "Operator": "Equal", "Value": "x"}]')
        assert result == [criteria("name", FilterOperator.EQUAL, "x")]

    def test_snake_case_names_accepted(self):
        result = parse_filters('[{"property_name": "name", "operator": "Contains", "value": "x"}]')
        assert result[0].operator is FilterOperator.CONTAINS

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_means_no_filters(self, raw):
        assert parse_filters(raw) == []

    def test_value_defaults_to_none(self):
        result = parse_filters('[{"PropertyName": "notes", "Operator": "Equal"}]')
        assert result[0].value is None

    @pytest.mark.parametrize(
        "raw",
        [
            "[{not json",
            '{"PropertyName": "name", "Operator": "Equal"}',
            '[{"PropertyName": "name", "Operator": "Like", "Value": "x"}]',
            '[{"Operator": "Equal", "Value": "x"}]',
        ],
    )
    def test_malformed_raises(self, raw):
        with pytest.raises(InvalidArgumentError, match="Invalid filters"):
            parse_filters(raw)

    def test_criteria_are_immutable(self):
        c = criteria("name", FilterOperator.EQUAL, "x")
        with pytest.raises(ValidationError):
            c.value = "y"


# ── EntityFieldRegistry ──────────────────────────────────────────────────────


class TestEntityFieldRegistry:
    def test_resolve_exact(self, registry):
        assert registry.resolve("unitPrice").name == "unitPrice"

    def test_resolve_case_insensitive(self, registry):
        assert registry.resolve("UNITPRICE").name == "unitPrice"
        assert registry.resolve("Name").name == "name"

    def test_resolve_unknown_raises(self, registry):
        with pytest.raises(InvalidArgumentError, match="not a field of Medication"):
            registry.resolve("colour")

    def test_primary_key(self, registry):
        assert registry.primary_key.name == "id"

    def test_search_columns_default_to_text_fields(self, registry):
        names = [c.name for c in registry.search_columns]
        assert names == ["name", "genericName", "form", "strength", "manufacturer"]

    def test_coerce(self, registry):
        assert registry.resolve("unitPrice").coerce("4.5") == Decimal("4.5")
        assert registry.resolve("isActive").coerce("true") is True
        assert registry.resolve("expiryDate").coerce("2026-01-31") == date(2026, 1, 31)
        assert registry.resolve("name").coerce(42) == "42"
        assert registry.resolve("name").coerce(None) is None

    def test_coerce_invalid_raises(self, registry):
        with pytest.raises(InvalidArgumentError, match="not a valid currency"):
            registry.resolve("unitPrice").coerce("cheap")

    def test_missing_column_fails_fast(self, medication):
        partial = EntityModel(
            name="Medication",
            display_name="Medication",
            plural_name="Medications",
            route="medication",
            primary_key="id",
            fields=medication.fields[:1],
        )
        table = build_table(MetaData(), partial, {"Medication": partial})
        with pytest.raises(MetadataError, match="has no column"):
            EntityFieldRegistry(medication, table)


# ── FilterService ────────────────────────────────────────────────────────────


class TestFilterService:
    def test_no_filters_is_noop(self, ctx, medication, registry, seeded):
        query = ctx.query(medication)
        assert FilterService().apply_filter(query, registry, [], "") is query
        assert FilterService().apply_filter(query, registry, None, None) is query
        assert len(ctx.fetch_all(query)) == 3

    def test_input_query_unmodified(self, ctx, medication, registry):
        query = ctx.query(medication)
        FilterService().apply_filter(
            query, registry, [criteria("name", FilterOperator.EQUAL, "x")], "y"
        )
        assert query.whereclause is None

    def test_equal(self, run, seeded):
        assert run([criteria("name", FilterOperator.EQUAL, "Ibuprofen")]) == ["Ibuprofen"]

    def test_not_equal(self, run, seeded):
        assert run([criteria("form", FilterOperator.NOT_EQUAL, "tablet")]) == ["Amoxicillin"]

    def test_property_name_case_insensitive(self, run, seeded):
        assert run([criteria("NAME", FilterOperator.EQUAL, "Ibuprofen")]) == ["Ibuprofen"]

    def test_contains_is_case_insensitive(self, run, seeded):
        assert run([criteria("genericName", FilterOperator.CONTAINS, "AMOX")]) == ["Amoxicillin"]

    def test_starts_with(self, run, seeded):
        assert run([criteria("name", FilterOperator.STARTS_WITH, "para")]) == ["Paracetamol 100%"]

    def test_ends_with(self, run, seeded):
        assert run([criteria("name", FilterOperator.ENDS_WITH, "FEN")]) == ["Ibuprofen"]

    def test_wildcards_are_literal(self, run, seeded):
        assert run([criteria("name", FilterOperator.CONTAINS, "%")]) == ["Paracetamol 100%"]
        assert run([criteria("name", FilterOperator.CONTAINS, "_")]) == []

    def test_greater_than_coerces_value(self, run, seeded):
        assert run([criteria("unitPrice", FilterOperator.GREATER_THAN, "2.00")]) == ["Amoxicillin"]

    def test_greater_than_or_equal(self, run, seeded):
        assert run([criteria("unitPrice", FilterOperator.GREATER_THAN_OR_EQUAL, 2)]) == [
            "Amoxicillin",
            "Ibuprofen",
        ]

    def test_less_than_on_dates(self, run, seeded):
        assert run([criteria("expiryDate", FilterOperator.LESS_THAN, "2026-06-01")]) == [
            "Paracetamol 100%"
        ]

    def test_less_than_or_equal_on_dates(self, run, seeded):
        assert run([criteria("expiryDate", FilterOperator.LESS_THAN_OR_EQUAL, "2026-06-01")]) == [
            "Ibuprofen",
            "Paracetamol 100%",
        ]

    def test_boolean_equal(self, run, seeded):
        assert run([criteria("isActive", FilterOperator.EQUAL, "false")]) == ["Paracetamol 100%"]

    def test_equal_none_matches_null(self, run, seeded):
        assert len(run([criteria("manufacturer", FilterOperator.EQUAL, None)])) == 3
        assert run([criteria("manufacturer", FilterOperator.NOT_EQUAL, None)]) == []

    def test_filters_are_anded(self, run, seeded):
        filters = [
            criteria("form", FilterOperator.EQUAL, "tablet"),
            criteria("isActive", FilterOperator.EQUAL, True),
        ]
        assert run(filters) == ["Ibuprofen"]

    def test_search_term_matches_any_search_field(self, run, seeded):
        assert run(search_term="ACETA") == ["Paracetamol 100%"]
        assert run(search_term="tablet") == ["Ibuprofen", "Paracetamol 100%"]

    def test_search_term_anded_with_filters(self, run, seeded):
        filters = [criteria("isActive", FilterOperator.EQUAL, True)]
        assert run(filters, search_term="tablet") == ["Ibuprofen"]

    def test_unknown_property_raises(self, run, seeded):
        with pytest.raises(InvalidArgumentError):
            run([criteria("colour", FilterOperator.EQUAL, "red")])

    @pytest.mark.parametrize(
        "name, op",
        [
            ("isActive", FilterOperator.CONTAINS),
            ("name", FilterOperator.GREATER_THAN),
            ("id", FilterOperator.LESS_THAN),
        ],
    )
    def test_unsupported_operator_raises(self, run, seeded, name, op):
        with pytest.raises(InvalidArgumentError, match="not supported"):
            run([criteria(name, op, "x")])

    def test_uncoercible_value_raises(self, run, seeded):
        with pytest.raises(InvalidArgumentError):
            run([criteria("unitPrice", FilterOperator.GREATER_THAN, "abc")])

    def test_ordered_operator_requires_value(self, run, seeded):
        with pytest.raises(InvalidArgumentError, match="requires a value"):
            run([criteria("unitPrice", FilterOperator.GREATER_THAN, None)])

    def test_entity_without_search_fields_matches_nothing(self):
        entity = EntityModel(
            name="Tag",
            display_name="Tag",
            plural_name="Tags",
            route="tag",
            primary_key="id",
            fields=[FieldDefinition(name="id", type="uuid", display_name="Id", primary_key=True)],
        )
        table = build_table(MetaData(), entity, {"Tag": entity})
        registry = EntityFieldRegistry(entity, table)
        condition = FilterService().build_search(registry, "anything")
        assert str(condition) == "false"
