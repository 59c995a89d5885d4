"""Generic CRUD service, one instance per entity type."""

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError

from clinicore.core.errors import InvalidArgumentError, NotFoundError
from clinicore.filtering import EntityFieldRegistry, FilterCriteria, FilterService
from clinicore.metadata.loader import EntityModel, MetadataLoader
from clinicore.persistence import Database, DataContext
from clinicore.services.models import build_record_model
from clinicore.services.pagination import page_offset, validate_pagination
from clinicore.services.patch import PatchDocument, apply_patch
from clinicore.services.results import InvalidArgument, NotFound, Ok, Result

logger = logging.getLogger(__name__)

SORT_ORDERS = ("asc", "desc")
INVALID_SORT_ORDER = "Invalid sort order. Use 'asc' or 'desc'."
PATCH_DOCUMENT_MISSING = "Patch document is missing."

_PATCH_DOCUMENT = TypeAdapter(PatchDocument)


def describe_validation_error(exc: ValidationError) -> str:
    """One line per failing field: ``field: message``."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class EntityService:
    """Get/GetById/Create/Update/Patch/Delete for one entity.

    Every operation takes the caller's DataContext and returns a result
    variant instead of raising for invalid input or missing records.
    """

    def __init__(
        self,
        entity: EntityModel,
        registry: EntityFieldRegistry,
        entities: dict[str, EntityModel],
        filter_service: FilterService | None = None,
    ):
        self.entity = entity
        self.registry = registry
        self.entities = entities
        self.filter_service = filter_service or FilterService()
        self.record_model = build_record_model(entity)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(
        self,
        ctx: DataContext,
        filters: Sequence[FilterCriteria] | None = None,
        search_term: str | None = None,
        page_number: int = 1,
        page_size: int = 10,
        sort_field: str | None = None,
        sort_order: str | None = "asc",
    ) -> Result:
        """Filtered, sorted page of records with related records embedded."""
        error = validate_pagination(page_number, page_size)
        if error:
            return self._invalid(error)

        try:
            query = self.filter_service.apply_filter(
                ctx.query(self.entity), self.registry, filters, search_term
            )
            if sort_field:
                query = query.order_by(*self._order_by(sort_field, sort_order))
        except InvalidArgumentError as exc:
            return self._invalid(exc.message)

        query = query.offset(page_offset(page_number, page_size)).limit(page_size)
        records = ctx.fetch_all(query)
        return Ok(ctx.include_related(self.entity, records, self.entities))

    def get_by_id(self, ctx: DataContext, record_id: Any) -> Ok:
        """Ok(record) with related records embedded, or Ok(None) if absent."""
        record = ctx.find(self.entity, record_id)
        if record is None:
            return Ok(None)
        return Ok(ctx.include_related(self.entity, [record], self.entities)[0])

    def _order_by(self, sort_field: str, sort_order: str | None) -> list:
        accessor = self.registry.resolve(sort_field)
        order = (sort_order or "asc").lower()
        if order not in SORT_ORDERS:
            raise InvalidArgumentError(INVALID_SORT_ORDER)

        column = accessor.column.desc() if order == "desc" else accessor.column.asc()
        pk = self.registry.primary_key
        if pk.name == accessor.name:
            return [column]
        # Primary key keeps equal sort values in a stable order across pages
        return [column, pk.column.asc()]

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, ctx: DataContext, data: Mapping[str, Any] | Any) -> Result:
        """Insert a record, generating its id when absent. Returns Ok(id)."""
        try:
            record = self._validate(data)
        except InvalidArgumentError as exc:
            return self._invalid(exc.message)

        pk = self.entity.primary_key
        if record.get(pk) is None:
            record[pk] = uuid.uuid4()

        try:
            ctx.add(self.entity, record)
            ctx.save_changes()
        except IntegrityError as exc:
            return self._constraint_violation(ctx, "create", exc)

        logger.info("Created %s %s", self.entity.name, record[pk])
        return Ok(record[pk])

    def update(self, ctx: DataContext, record_id: Any, data: Mapping[str, Any] | Any) -> Result:
        """Replace every field of an existing record. Returns Ok(True).

        The row is matched on the id embedded in *data*; *record_id* is only
        used when the payload carries none.
        """
        try:
            record = self._validate(data)
        except InvalidArgumentError as exc:
            return self._invalid(exc.message)

        pk = self.entity.primary_key
        if record.get(pk) is None:
            record[pk] = record_id

        try:
            matched = ctx.replace(self.entity, record)
            if not matched:
                ctx.rollback()
                return NotFound()
            ctx.save_changes()
        except IntegrityError as exc:
            return self._constraint_violation(ctx, "update", exc)

        logger.info("Updated %s %s", self.entity.name, record[pk])
        return Ok(True)

    def patch(self, ctx: DataContext, record_id: Any, document: PatchDocument | None) -> Result:
        """Apply a patch document to an existing record in one commit."""
        if document is None:
            return self._invalid(PATCH_DOCUMENT_MISSING)

        try:
            existing = self._require(ctx, record_id)
        except NotFoundError as exc:
            return NotFound(exc.message)

        try:
            operations = _PATCH_DOCUMENT.validate_python(document)
            patched = apply_patch(existing, operations, self.registry)
            record = self._validate(patched)
        except ValidationError as exc:
            return self._invalid(describe_validation_error(exc))
        except InvalidArgumentError as exc:
            return self._invalid(exc.message)

        record[self.entity.primary_key] = existing[self.entity.primary_key]
        try:
            ctx.replace(self.entity, record)
            ctx.save_changes()
        except IntegrityError as exc:
            return self._constraint_violation(ctx, "patch", exc)

        logger.info(
            "Patched %s %s (%d operations)", self.entity.name, record_id, len(operations)
        )
        return Ok(True)

    def delete(self, ctx: DataContext, record_id: Any) -> Result:
        try:
            self._require(ctx, record_id)
        except NotFoundError as exc:
            return NotFound(exc.message)

        try:
            ctx.remove(self.entity, record_id)
            ctx.save_changes()
        except IntegrityError as exc:
            return self._constraint_violation(ctx, "delete", exc)

        logger.info("Deleted %s %s", self.entity.name, record_id)
        return Ok(True)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, ctx: DataContext, record_id: Any) -> dict[str, Any]:
        record = ctx.find(self.entity, record_id)
        if record is None:
            raise NotFoundError(f"No {self.entity.name} found with id {record_id}.")
        return record

    def _validate(self, data: Mapping[str, Any] | Any) -> dict[str, Any]:
        """Validate against the record model and return plain column values."""
        try:
            return self.record_model.model_validate(data).model_dump()
        except ValidationError as exc:
            raise InvalidArgumentError(describe_validation_error(exc)) from exc

    def _invalid(self, message: str) -> InvalidArgument:
        logger.warning("Rejected %s request: %s", self.entity.name, message)
        return InvalidArgument(message)

    def _constraint_violation(
        self, ctx: DataContext, operation: str, exc: IntegrityError
    ) -> InvalidArgument:
        ctx.rollback()
        return self._invalid(
            f"Cannot {operation} {self.entity.name}: {exc.orig}"
        )


def build_services(loader: MetadataLoader, database: Database) -> dict[str, EntityService]:
    """Create one service per loaded entity, keyed by entity name.

    Raises:
        MetadataError: If an entity's fields don't match its table
    """
    filter_service = FilterService()
    services = {}
    for name, entity in loader.entities.items():
        registry = EntityFieldRegistry(entity, database.tables[name])
        services[name] = EntityService(entity, registry, loader.entities, filter_service)
    logger.info("Built services for %d entities", len(services))
    return services
