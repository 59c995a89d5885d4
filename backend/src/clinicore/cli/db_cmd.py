"""Database CLI commands."""

from pathlib import Path

import click

from clinicore.metadata.loader import MetadataError, MetadataLoader
from clinicore.persistence import DatabaseConfig, create_database
from clinicore.settings import AppSettings


@click.group()
def db():
    """Database commands."""
    pass


@db.command()
@click.option(
    "--url",
    default=None,
    help="Database URL (defaults to DATABASE_URL / CLINICORE_DB_PATH).",
)
def init(url: str | None):
    """Create tables for every entity that doesn't have one yet."""
    settings = AppSettings.from_env()

    try:
        loader = MetadataLoader(settings.metadata_path)
        loader.load_all()
    except MetadataError as e:
        click.echo(click.style(f"Metadata is invalid: {e}", fg="red"), err=True)
        raise SystemExit(1)

    config = DatabaseConfig(url=url) if url else DatabaseConfig.from_env(settings.base_path)
    if config.is_sqlite and not config.is_memory:
        Path(config.url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

    try:
        database = create_database(config, loader.entities)
    except ValueError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        raise SystemExit(1)

    database.connect()
    try:
        database.initialize()
    finally:
        database.close()

    for name in sorted(database.tables):
        click.echo(f"  ✓ {database.tables[name].name}")
    click.echo(click.style(f"\nInitialized {len(database.tables)} tables.", fg="green", bold=True))
