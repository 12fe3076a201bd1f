"""The `connection-string` command (alias `cs`)."""

from __future__ import annotations

import click

from neonctl.cli._output import write
from neonctl.cli._shared import CliContext, fail
from neonctl.connection_string import (
    ConnectionTarget,
    EndpointType,
    SslMode,
    build_connection_uri,
    resolve_connection_target,
)
from neonctl.errors import NeonCtlError
from neonctl.psql import run_psql

EXTENDED_FIELDS = ("host", "role", "password", "database")


class PassthroughCommand(click.Command):
    """Keep everything after `--` out of click's parsing; it goes to psql."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if "--" in args:
            index = args.index("--")
            ctx.meta["passthrough_args"] = args[index + 1 :]
            args = args[:index]
        return super().parse_args(ctx, args)


@click.command("connection-string", cls=PassthroughCommand)
@click.argument("branch", required=False, default=None)
@click.option("--project-id", default=None, help="Project ID (defaults to the context file).")
@click.option("--role-name", default=None, help="Role name (inferred if the branch has one).")
@click.option(
    "--database-name", default=None, help="Database name (inferred if the branch has one)."
)
@click.option("--pooled", is_flag=True, help="Use the connection pooler.")
@click.option("--prisma", is_flag=True, help="Add Prisma connection parameters.")
@click.option(
    "--endpoint-type",
    type=click.Choice([t.value for t in EndpointType]),
    default=None,
    help="Endpoint type (read_write preferred when omitted).",
)
@click.option(
    "--ssl",
    "ssl",
    type=click.Choice([m.value for m in SslMode]),
    default=SslMode.REQUIRE.value,
    show_default=True,
    help="SSL mode; 'omit' leaves sslmode out of the URI.",
)
@click.option("--extended", is_flag=True, help="Show host, role, password and database.")
@click.option(
    "--psql", "use_psql", is_flag=True, help="Connect with psql (args after -- pass through)."
)
@click.pass_context
def connection_string(
    ctx: click.Context,
    branch: str | None,
    project_id: str | None,
    role_name: str | None,
    database_name: str | None,
    pooled: bool,
    prisma: bool,
    endpoint_type: str | None,
    ssl: str,
    extended: bool,
    use_psql: bool,
) -> None:
    """Get a connection string for BRANCH[@(lsn|timestamp)].

    \b
    BRANCH is a name or ID; the default branch is used when omitted.
    Examples:
      neonctl connection-string main
      neonctl cs main@2024-01-01T00:00:00Z --ssl verify-full
      neonctl cs dev --pooled --prisma
      neonctl cs main --psql -- -c "select 1"
    """
    obj: CliContext = ctx.obj

    async def _run() -> ConnectionTarget:
        async with await obj.api() as api:
            pid = await obj.resolve_project_id(api, project_id)
            return await resolve_connection_target(
                api,
                pid,
                branch or obj.context_branch(pid),
                endpoint_type=EndpointType(endpoint_type) if endpoint_type else None,
                role_name=role_name,
                database_name=database_name,
                pooled=pooled,
                sslmode=SslMode(ssl),
            )

    target = obj.run(_run)
    uri = build_connection_uri(target, prisma=prisma)

    if use_psql:
        try:
            code = run_psql(uri, ctx.meta.get("passthrough_args", []))
        except NeonCtlError as e:
            fail(str(e))
        raise SystemExit(code)
    if extended:
        write(
            {
                "host": target.host,
                "role": target.role,
                "password": target.password,
                "database": target.database,
            },
            fields=EXTENDED_FIELDS,
            output_format=obj.settings.output,
        )
        return
    click.echo(uri)
