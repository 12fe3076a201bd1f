"""The `me` command: show the authenticated user."""

from __future__ import annotations

from typing import Any

import click

from neonctl.cli._output import write
from neonctl.cli._shared import CliContext

USER_FIELDS = ("login", "email", "name", "projects_limit")


@click.command()
@click.pass_obj
def me(obj: CliContext) -> None:
    """Show current user."""

    async def _run() -> dict[str, Any]:
        async with await obj.api() as api:
            return await api.get_current_user()

    user = obj.run(_run)
    write(user, fields=USER_FIELDS, output_format=obj.settings.output)
