"""clinicore CLI entry point."""

import click


@click.group()
def cli():
    """clinicore: metadata-driven clinic records API."""
    pass


# Register subcommand groups
from clinicore.cli.auth_cmd import auth  # noqa: E402
from clinicore.cli.db_cmd import db  # noqa: E402
from clinicore.cli.metadata_cmd import metadata  # noqa: E402

cli.add_command(metadata)
cli.add_command(db)
cli.add_command(auth)
