"""Build SQLAlchemy tables from entity metadata."""

from sqlalchemy import Column, ForeignKey, MetaData, Table

from clinicore.core.types import get_field_type
from clinicore.metadata.loader import EntityModel

_ON_DELETE = {
    "restrict": "RESTRICT",
    "cascade": "CASCADE",
    "setNull": "SET NULL",
}


def table_name(entity_name: str) -> str:
    """Convert entity name to table name."""
    result = []
    for i, char in enumerate(entity_name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def build_table(
    metadata: MetaData,
    entity: EntityModel,
    entities: dict[str, EntityModel],
) -> Table:
    """Declare the table for an entity on *metadata*.

    Columns keep the field names from the entity YAML. Relation fields
    become foreign keys to the related entity's primary key.
    """
    columns = []
    for field in entity.fields:
        field_type = get_field_type(field.type)
        args = []
        if field.relation:
            target = entities[field.relation.entity]
            args.append(
                ForeignKey(
                    f"{table_name(target.name)}.{target.primary_key}",
                    ondelete=_ON_DELETE[field.relation.on_delete],
                )
            )
        columns.append(
            Column(
                field.name,
                field_type.column_type(field.validation.max_length),
                *args,
                primary_key=field.primary_key,
                nullable=not field.required,
            )
        )

    return Table(table_name(entity.name), metadata, *columns)
