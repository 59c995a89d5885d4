"""Per-entity REST endpoints."""

import uuid
from collections.abc import Callable, Iterator
from typing import Any, assert_never

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from clinicore.auth import Entitlement, require_entitlement
from clinicore.core.errors import InvalidArgumentError
from clinicore.filtering import parse_filters
from clinicore.metadata.loader import EntityModel
from clinicore.persistence import DataContext
from clinicore.services import (
    EntityService,
    InvalidArgument,
    NotFound,
    Ok,
    PatchOperation,
    Result,
    validate_pagination,
)
from clinicore.services.entity_service import PATCH_DOCUMENT_MISSING

MISMATCHED_ID = "Mismatched Id"


def get_data_context(request: Request) -> Iterator[DataContext]:
    """Open a data context for the duration of one request."""
    with request.app.state.database.context() as ctx:
        yield ctx


def _respond(result: Result, envelope: Callable[[Any], Any] | None = None) -> Any:
    """Map a service result onto an HTTP response."""
    match result:
        case Ok(value=value):
            return envelope(value) if envelope else value
        case NotFound(message=message):
            raise HTTPException(status_code=404, detail=message)
        case InvalidArgument(message=message):
            raise HTTPException(status_code=400, detail=message)
        case _:
            assert_never(result)


def create_entity_router(entity: EntityModel, service: EntityService) -> APIRouter:
    """Build the six CRUD routes for an entity under ``/api/{route}``."""
    router = APIRouter(prefix=f"/api/{entity.route}", tags=[entity.display_name])
    record_model = service.record_model
    name = entity.display_name.lower()

    def entitled(entitlement: Entitlement) -> list:
        return [Depends(require_entitlement(entity, entitlement))]

    @router.post("", summary=f"Add a new {name}", dependencies=entitled(Entitlement.CREATE))
    def create(
        model: record_model,  # type: ignore[valid-type]
        ctx: DataContext = Depends(get_data_context),
    ) -> dict[str, Any]:
        return _respond(service.create(ctx, model), lambda id: {"id": id})

    @router.get("", summary=f"List {entity.plural_name.lower()}", dependencies=entitled(Entitlement.READ))
    def get(
        filters: str | None = Query(
            None,
            description='JSON array: [{"PropertyName": "name", "Operator": "Equal", "Value": "x"}]',
        ),
        search_term: str | None = Query(None, alias="searchTerm"),
        page_number: int = Query(1, alias="pageNumber"),
        page_size: int = Query(10, alias="pageSize"),
        sort_field: str | None = Query(None, alias="sortField"),
        sort_order: str = Query("asc", alias="sortOrder"),
        ctx: DataContext = Depends(get_data_context),
    ) -> Any:
        error = validate_pagination(page_number, page_size)
        if error:
            raise HTTPException(status_code=400, detail=error)

        try:
            criteria = parse_filters(filters)
        except InvalidArgumentError as e:
            raise HTTPException(status_code=400, detail=e.message)

        return _respond(
            service.get(
                ctx,
                filters=criteria,
                search_term=search_term,
                page_number=page_number,
                page_size=page_size,
                sort_field=sort_field,
                sort_order=sort_order,
            )
        )

    @router.get("/{id}", summary=f"Get a {name} by id", dependencies=entitled(Entitlement.READ))
    def get_by_id(id: uuid.UUID, ctx: DataContext = Depends(get_data_context)) -> Any:
        result = service.get_by_id(ctx, id)
        if result.value is None:
            raise HTTPException(status_code=404, detail=NotFound().message)
        return result.value

    @router.put("/{id}", summary=f"Update a {name}", dependencies=entitled(Entitlement.UPDATE))
    def update(
        id: uuid.UUID,
        model: record_model,  # type: ignore[valid-type]
        ctx: DataContext = Depends(get_data_context),
    ) -> dict[str, Any]:
        body_id = getattr(model, entity.primary_key)
        if body_id is not None and body_id != id:
            raise HTTPException(status_code=400, detail=MISMATCHED_ID)
        return _respond(service.update(ctx, id, model), lambda status: {"status": status})

    @router.patch("/{id}", summary=f"Patch a {name}", dependencies=entitled(Entitlement.UPDATE))
    def patch(
        id: uuid.UUID,
        document: list[PatchOperation] | None = Body(default=None),
        ctx: DataContext = Depends(get_data_context),
    ) -> dict[str, Any]:
        if document is None:
            raise HTTPException(status_code=400, detail=PATCH_DOCUMENT_MISSING)
        return _respond(service.patch(ctx, id, document), lambda status: {"status": status})

    @router.delete("/{id}", summary=f"Delete a {name}", dependencies=entitled(Entitlement.DELETE))
    def delete(id: uuid.UUID, ctx: DataContext = Depends(get_data_context)) -> dict[str, Any]:
        return _respond(service.delete(ctx, id), lambda status: {"status": status})

    return router
