"""The `auth` command group: log in, inspect and remove stored credentials."""

from __future__ import annotations

from datetime import UTC, datetime

import click

from neonctl.cli._shared import CliContext
from neonctl.errors import CredentialsError


@click.group(invoke_without_command=True)
@click.pass_context
def auth(ctx: click.Context) -> None:
    """Authenticate in the browser and store credentials.

    \b
    Subcommands:
      status   show whether credentials are stored
      logout   remove stored credentials
    """
    if ctx.invoked_subcommand is not None:
        return
    obj: CliContext = ctx.obj
    # An explicit login is allowed in CI, unlike the implicit one.
    obj.run(lambda: obj.auth_manager().login(force=True))


@auth.command()
@click.pass_obj
def status(obj: CliContext) -> None:
    """Show whether credentials are stored and still valid."""
    store = obj.store
    try:
        token_set = store.load()
    except CredentialsError as e:
        click.echo(f"unusable credentials: {e}")
        return
    if token_set is None:
        click.echo("no stored credentials")
        return

    user = f" as {token_set.user_id}" if token_set.user_id else ""
    if token_set.expires_at is None:
        click.echo(f"authenticated{user}")
        return
    expires = datetime.fromtimestamp(token_set.expires_at, UTC).isoformat()
    if token_set.expired():
        click.echo(f"authenticated{user}, token expired at {expires} (refreshed on next use)")
    else:
        click.echo(f"authenticated{user}, token expires at {expires}")


@auth.command()
@click.pass_obj
def logout(obj: CliContext) -> None:
    """Remove stored credentials."""
    if obj.store.remove():
        click.echo(f"credentials removed ({obj.store.path})")
    else:
        click.echo("no stored credentials to remove")
