"""CLI entry point. Both `neonctl` and `neon` resolve here."""

from __future__ import annotations

from pathlib import Path

import click

from neonctl.cli._output import OUTPUT_FORMATS
from neonctl.cli._shared import CliContext, configure_logging
from neonctl.cli.auth import auth
from neonctl.cli.branches import branches
from neonctl.cli.connection_string import connection_string
from neonctl.cli.me import me
from neonctl.cli.set_context import set_context
from neonctl.config import (
    DEFAULT_API_HOST,
    DEFAULT_CLIENT_ID,
    DEFAULT_OAUTH_HOST,
    Settings,
)


@click.group()
@click.version_option(package_name="neonctl")
@click.option("--api-key", envvar="NEON_API_KEY", default=None, help="API key (skips login).")
@click.option("--api-host", envvar="NEON_API_HOST", default=DEFAULT_API_HOST, show_default=True)
@click.option(
    "--oauth-host", envvar="NEON_OAUTH_HOST", default=DEFAULT_OAUTH_HOST, show_default=True
)
@click.option("--client-id", envvar="NEON_CLIENT_ID", default=DEFAULT_CLIENT_ID, show_default=True)
@click.option(
    "--config-dir",
    envvar="NEON_CONFIG_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding credentials.json [default: ~/.config/neonctl].",
)
@click.option(
    "--context-file",
    envvar="NEON_CONTEXT_FILE",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Context file [default: nearest .neon].",
)
@click.option(
    "-o", "--output", type=click.Choice(OUTPUT_FORMATS), default="table", show_default=True
)
@click.option("--debug", is_flag=True, envvar="NEONCTL_DEBUG", help="Verbose logging.")
@click.pass_context
def main(
    ctx: click.Context,
    api_key: str | None,
    api_host: str,
    oauth_host: str,
    client_id: str,
    config_dir: Path | None,
    context_file: Path | None,
    output: str,
    debug: bool,
) -> None:
    """neonctl: manage Neon Postgres from the command line."""
    configure_logging(debug)
    ctx.obj = CliContext(
        settings=Settings(
            api_host=api_host,
            oauth_host=oauth_host,
            client_id=client_id,
            config_dir=config_dir,
            api_key=api_key or None,
            context_file=context_file,
            output=output,
            debug=debug,
        ),
        command=ctx.invoked_subcommand,
    )


main.add_command(auth)
main.add_command(auth, "login")
main.add_command(me)
main.add_command(branches)
main.add_command(connection_string)
main.add_command(connection_string, "cs")
main.add_command(set_context)
