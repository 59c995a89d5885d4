"""SQLAlchemy-backed data context."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from typing import Any

from sqlalchemy import (
    Connection,
    Engine,
    MetaData,
    Select,
    Table,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.pool import StaticPool

from clinicore.metadata.loader import EntityModel
from clinicore.persistence.config import DatabaseConfig
from clinicore.persistence.schema import build_table

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DataContext:
    """Unit of work over a single connection.

    Changes made through add/replace/remove stay pending until
    save_changes() commits them.
    """

    def __init__(self, connection: Connection, tables: dict[str, Table]):
        self._conn = connection
        self._tables = tables

    def table(self, entity: EntityModel) -> Table:
        return self._tables[entity.name]

    def query(self, entity: EntityModel) -> Select:
        """Base query selecting every column of the entity's table."""
        return select(self.table(entity))

    def fetch_all(self, query: Select) -> list[dict[str, Any]]:
        return [dict(row) for row in self._conn.execute(query).mappings()]

    def find(self, entity: EntityModel, record_id: Any) -> dict[str, Any] | None:
        """Get a single record by primary key."""
        table = self.table(entity)
        row = (
            self._conn.execute(
                select(table).where(table.c[entity.primary_key] == record_id)
            )
            .mappings()
            .first()
        )
        return dict(row) if row else None

    def include_related(
        self,
        entity: EntityModel,
        records: list[dict[str, Any]],
        entities: dict[str, EntityModel],
    ) -> list[dict[str, Any]]:
        """Embed the parent record of each relation field.

        The related record is stored under the relation's include name,
        or None when the foreign key is null.
        """
        for field in entity.relation_fields:
            related = entities[field.relation.entity]
            related_table = self.table(related)
            ids = {r[field.name] for r in records if r.get(field.name) is not None}

            by_id: dict[Any, dict[str, Any]] = {}
            if ids:
                rows = self._conn.execute(
                    select(related_table).where(
                        related_table.c[related.primary_key].in_(ids)
                    )
                ).mappings()
                by_id = {row[related.primary_key]: dict(row) for row in rows}

            for record in records:
                record[field.relation.include] = by_id.get(record.get(field.name))

        return records

    def add(self, entity: EntityModel, record: dict[str, Any]) -> None:
        self._conn.execute(insert(self.table(entity)).values(**record))

    def replace(self, entity: EntityModel, record: dict[str, Any]) -> int:
        """Overwrite every non-key column of an existing row.

        Returns:
            Number of rows matched (0 when the record does not exist)
        """
        table = self.table(entity)
        pk = entity.primary_key
        values = {k: v for k, v in record.items() if k != pk}
        result = self._conn.execute(
            update(table).where(table.c[pk] == record[pk]).values(**values)
        )
        return result.rowcount

    def remove(self, entity: EntityModel, record_id: Any) -> int:
        table = self.table(entity)
        result = self._conn.execute(
            delete(table).where(table.c[entity.primary_key] == record_id)
        )
        return result.rowcount

    def save_changes(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()


class Database:
    """Engine and table registry for all entities."""

    def __init__(self, config: DatabaseConfig, entities: dict[str, EntityModel]):
        self.config = config
        self.entities = entities
        self.metadata = MetaData()
        self.tables: dict[str, Table] = {
            name: build_table(self.metadata, entity, entities)
            for name, entity in entities.items()
        }
        self.engine: Engine | None = None
        # In-memory SQLite shares one connection, so contexts take turns on it.
        # A plain Lock: FastAPI may exit a dependency on a different thread.
        self._shared_connection_lock = threading.Lock() if config.is_memory else None

    def connect(self) -> None:
        """Create the engine."""
        kwargs: dict[str, Any] = {}
        if self.config.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.config.is_memory:
                # One shared connection, otherwise each checkout sees an empty database
                kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.config.sqlalchemy_url, **kwargs)
        if self.config.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("Connected to %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self.engine:
            self.engine.dispose()
            self.engine = None

    def initialize(self) -> None:
        """Create tables for every entity if they don't exist."""
        if not self.engine:
            raise RuntimeError("Database not connected")
        self.metadata.create_all(self.engine)
        logger.info("Initialized %d tables", len(self.tables))

    @contextmanager
    def context(self) -> Iterator[DataContext]:
        """Open a data context for one request.

        Uncommitted changes are rolled back if the block raises, and the
        connection is always returned to the pool. With an in-memory
        database only one thread holds a context at a time.
        """
        if not self.engine:
            raise RuntimeError("Database not connected")
        with self._shared_connection_lock or nullcontext():
            conn = self.engine.connect()
            try:
                yield DataContext(conn, self.tables)
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()
