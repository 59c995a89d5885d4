"""Shared fixtures: repository metadata and an in-memory database."""

from pathlib import Path

import pytest

from clinicore.metadata.loader import MetadataLoader
from clinicore.persistence import DatabaseConfig, create_database
from clinicore.services import build_services

METADATA_PATH = Path(__file__).resolve().parents[2] / "metadata"


@pytest.fixture(scope="session")
def loader():
    loader = MetadataLoader(METADATA_PATH)
    loader.load_all()
    return loader


@pytest.fixture
def database(loader):
    """Fresh in-memory SQLite database with every entity table."""
    db = create_database(DatabaseConfig(url="sqlite://"), loader.entities)
    db.connect()
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def services(loader, database):
    return build_services(loader, database)


@pytest.fixture
def ctx(database):
    with database.context() as ctx:
        yield ctx
