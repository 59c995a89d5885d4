"""Patch documents: ordered field-level mutations applied to one record.

Operations follow the JSON Patch vocabulary restricted to top-level
fields. A document is applied to a copy of the record; if any operation
fails the original record is left untouched.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinicore.core.errors import InvalidArgumentError
from clinicore.filtering.registry import EntityFieldRegistry, FieldAccessor


class PatchOp(str, Enum):
    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"
    COPY = "copy"
    MOVE = "move"
    TEST = "test"


class PatchOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    op: PatchOp
    path: str = Field(pattern=r"^/[^/]+$")
    value: Any = None
    from_: str | None = Field(default=None, alias="from", pattern=r"^/[^/]+$")

    @model_validator(mode="after")
    def _check_operands(self) -> "PatchOperation":
        if self.op in (PatchOp.ADD, PatchOp.REPLACE, PatchOp.TEST):
            if "value" not in self.model_fields_set:
                raise ValueError(f"'{self.op.value}' operation requires 'value'")
        if self.op in (PatchOp.COPY, PatchOp.MOVE) and self.from_ is None:
            raise ValueError(f"'{self.op.value}' operation requires 'from'")
        return self


PatchDocument = list[PatchOperation]


def _target(registry: EntityFieldRegistry, pointer: str) -> FieldAccessor:
    return registry.resolve(pointer[1:])


def _writable(registry: EntityFieldRegistry, pointer: str) -> FieldAccessor:
    accessor = _target(registry, pointer)
    if accessor.field.primary_key:
        raise InvalidArgumentError(f"Primary key '{accessor.name}' cannot be patched")
    return accessor


def _assign(record: dict[str, Any], accessor: FieldAccessor, value: Any) -> None:
    if value is None and accessor.field.required:
        raise InvalidArgumentError(f"Field '{accessor.name}' is required")
    record[accessor.name] = value


def apply_patch(
    record: dict[str, Any],
    document: PatchDocument,
    registry: EntityFieldRegistry,
) -> dict[str, Any]:
    """Apply every operation in order and return the patched copy.

    Raises:
        InvalidArgumentError: Unknown field, a write to the primary key,
            a required field set to null, an unconvertible value, or a
            failed ``test``
    """
    patched = dict(record)

    for operation in document:
        op = operation.op

        if op == PatchOp.TEST:
            accessor = _target(registry, operation.path)
            expected = accessor.coerce(operation.value)
            if patched.get(accessor.name) != expected:
                raise InvalidArgumentError(
                    f"Test failed: '{accessor.name}' is not {operation.value!r}"
                )

        elif op in (PatchOp.ADD, PatchOp.REPLACE):
            accessor = _writable(registry, operation.path)
            _assign(patched, accessor, accessor.coerce(operation.value))

        elif op == PatchOp.REMOVE:
            accessor = _writable(registry, operation.path)
            _assign(patched, accessor, None)

        elif op in (PatchOp.COPY, PatchOp.MOVE):
            source = _target(registry, operation.from_)
            accessor = _writable(registry, operation.path)
            value = patched.get(source.name)
            _assign(patched, accessor, accessor.coerce(value))
            if op == PatchOp.MOVE and source.name != accessor.name:
                if source.field.primary_key:
                    raise InvalidArgumentError(
                        f"Primary key '{source.name}' cannot be moved"
                    )
                _assign(patched, source, None)

    return patched
