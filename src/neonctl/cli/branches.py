"""The `branches` command group."""

from __future__ import annotations

from typing import Any

import click

from neonctl.api import Branch
from neonctl.cli._output import to_record, write
from neonctl.cli._shared import CliContext
from neonctl.enrichers import resolve_branch_id
from neonctl.errors import PointInTimeParseError
from neonctl.point_in_time import PointInTimeTag, resolve_point_in_time

BRANCH_FIELDS = ("id", "name", "default", "created_at")

project_id_option = click.option(
    "--project-id", default=None, help="Project ID (defaults to the context file)."
)


@click.group()
def branches() -> None:
    """Manage branches."""


@branches.command("list")
@project_id_option
@click.pass_obj
def branches_list(obj: CliContext, project_id: str | None) -> None:
    """List branches."""

    async def _run() -> list[Branch]:
        async with await obj.api() as api:
            pid = await obj.resolve_project_id(api, project_id)
            return await api.list_branches(pid)

    result = obj.run(_run)
    write(
        [to_record(b) for b in result],
        fields=BRANCH_FIELDS,
        output_format=obj.settings.output,
    )


@branches.command("get")
@click.argument("branch", required=False, default=None)
@project_id_option
@click.pass_obj
def branches_get(obj: CliContext, branch: str | None, project_id: str | None) -> None:
    """Get a branch by name or ID (the default branch when omitted)."""

    async def _run() -> Branch:
        async with await obj.api() as api:
            pid = await obj.resolve_project_id(api, project_id)
            branch_id = await resolve_branch_id(api, pid, branch or obj.context_branch(pid))
            return await api.get_branch(pid, branch_id)

    result = obj.run(_run)
    write(to_record(result), fields=BRANCH_FIELDS, output_format=obj.settings.output)


@branches.command("restore")
@click.argument("target")
@click.argument("source")
@click.option(
    "--preserve-under-name",
    default=None,
    help="Keep the target's current state as a new branch with this name.",
)
@project_id_option
@click.pass_obj
def branches_restore(
    obj: CliContext,
    target: str,
    source: str,
    preserve_under_name: str | None,
    project_id: str | None,
) -> None:
    """Restore TARGET to SOURCE[@(lsn|timestamp)].

    \b
    SOURCE may be a branch name or ID, ^self (TARGET itself) or ^parent.
    Examples:
      neonctl branches restore main ^self@2024-01-01T00:00:00Z
      neonctl branches restore dev ^parent@0/1F56000
      neonctl branches restore dev main --preserve-under-name dev-backup
    """

    async def _run() -> dict[str, Any]:
        async with await obj.api() as api:
            pid = await obj.resolve_project_id(api, project_id)
            target_id = await resolve_branch_id(api, pid, target)
            pit = await resolve_point_in_time(api, pid, source, target_branch_id=target_id)
            if pit.branch_id == target_id and pit.point.is_head:
                raise PointInTimeParseError(
                    "Cannot restore a branch to its own head; specify @lsn or @timestamp"
                )

            body: dict[str, Any] = {"source_branch_id": pit.branch_id}
            if pit.point.tag == PointInTimeTag.LSN:
                body["source_lsn"] = pit.point.lsn
            elif pit.point.tag == PointInTimeTag.TIMESTAMP:
                body["source_timestamp"] = pit.point.timestamp
            if preserve_under_name:
                body["preserve_under_name"] = preserve_under_name
            data = await api.restore_branch(pid, target_id, body)
            return data["branch"]

    result = obj.run(_run)
    write(result, fields=BRANCH_FIELDS, output_format=obj.settings.output)
