"""Persistence layer for clinicore."""

from clinicore.persistence.config import DatabaseConfig, create_database
from clinicore.persistence.context import Database, DataContext
from clinicore.persistence.schema import build_table, table_name

__all__ = [
    "Database",
    "DatabaseConfig",
    "DataContext",
    "build_table",
    "create_database",
    "table_name",
]
