"""Auth CLI commands."""

import click

from clinicore.auth import ROLE_HIERARCHY, JWTService
from clinicore.settings import AppSettings


@click.group()
def auth():
    """Authentication commands."""
    pass


@auth.command()
@click.option("--user", "user_id", required=True, help="User id to put in the token subject.")
@click.option(
    "--role",
    default="user",
    show_default=True,
    type=click.Choice(list(ROLE_HIERARCHY)),
    help="Role granted by the token.",
)
@click.option("--ttl", default=None, type=int, help="Lifetime in seconds.")
def token(user_id: str, role: str, ttl: int | None):
    """Issue a development access token signed with CLINICORE_SECRET_KEY."""
    jwt_service = JWTService(AppSettings.from_env().secret_key)
    click.echo(jwt_service.issue_token(user_id, role=role, ttl=ttl))
