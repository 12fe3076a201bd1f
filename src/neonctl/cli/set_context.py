"""The `set-context` command: pin a project (and branch) for the current directory tree."""

from __future__ import annotations

import click

from neonctl.cli._shared import CliContext
from neonctl.context import Context, update_context_file


@click.command("set-context")
@click.option("--project-id", default=None, help="Project ID used when --project-id is omitted.")
@click.option("--branch", default=None, help="Branch name or ID used when none is given.")
@click.pass_obj
def set_context(obj: CliContext, project_id: str | None, branch: str | None) -> None:
    """Set the current context (an empty call clears it)."""
    path = obj.context_path
    update_context_file(path, Context(project_id=project_id, branch_id=branch))
    click.echo(f"Context saved to {path}")
