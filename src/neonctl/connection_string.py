"""Build Postgres connection URIs for a branch endpoint.

All lookups (branch, endpoint, role, database, password) happen in
resolve_connection_target before anything is rendered, so a failed
resolution never produces partial output.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode

from neonctl.api import ApiClient, Endpoint
from neonctl.enrichers import resolve_branch_id
from neonctl.errors import AmbiguousError, NotFoundError
from neonctl.point_in_time import PointInTime, PointInTimeTag, parse_pit_branch

logger = logging.getLogger(__name__)

PRISMA_TIMEOUT = "30"


class SslMode(enum.Enum):
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"
    OMIT = "omit"


class EndpointType(enum.Enum):
    READ_WRITE = "read_write"
    READ_ONLY = "read_only"


@dataclass(frozen=True)
class ConnectionTarget:
    host: str
    role: str
    password: str
    database: str
    sslmode: SslMode = SslMode.REQUIRE
    pooled: bool = False
    point_in_time: PointInTime = field(default_factory=PointInTime)

    @property
    def pit_option(self) -> str | None:
        if self.point_in_time.tag == PointInTimeTag.LSN:
            return f"neon_lsn:{self.point_in_time.lsn}"
        if self.point_in_time.tag == PointInTimeTag.TIMESTAMP:
            return f"neon_timestamp:{self.point_in_time.timestamp}"
        return None


def select_endpoint(
    endpoints: list[Endpoint], endpoint_type: EndpointType | None, *, branch_id: str
) -> Endpoint:
    """Pick the endpoint of the requested type.

    Without a requested type, read-write is preferred and any endpoint is
    accepted as a fallback.
    """
    wanted = endpoint_type or EndpointType.READ_WRITE
    for endpoint in endpoints:
        if endpoint.type == wanted.value:
            return endpoint
    if endpoint_type is None and endpoints:
        return endpoints[0]
    raise NotFoundError(f"No {wanted.value} endpoint found for the branch: {branch_id}")


def rewrite_host(
    endpoint: Endpoint, *, branch_id: str, pooled: bool, point_in_time: PointInTime
) -> str:
    """Apply at most one of the two host-naming schemes.

    Point-in-time connections address the branch (ep-x.region → br-y.region);
    pooled connections address the endpoint's pooler (ep-x-pooler.region).
    """
    if not point_in_time.is_head:
        if pooled:
            logger.warning(
                "Pooled connections are not available for a point in time; ignoring --pooled"
            )
        return endpoint.host.replace(endpoint.id, branch_id, 1)
    if pooled:
        return endpoint.host.replace(endpoint.id, f"{endpoint.id}-pooler", 1)
    return endpoint.host


def pick_single(kind: str, names: list[str], *, option: str, branch_id: str) -> str:
    """Return the only candidate, or fail naming all of them."""
    if not names:
        raise NotFoundError(f"No {kind}s found for the branch: {branch_id}")
    if len(names) > 1:
        raise AmbiguousError(
            f"Multiple {kind}s found for the branch, please provide one with the "
            f"{option} option: {', '.join(names)}"
        )
    return names[0]


def build_connection_uri(target: ConnectionTarget, *, prisma: bool = False) -> str:
    params: list[tuple[str, str]] = []
    if target.pit_option is not None:
        params.append(("options", target.pit_option))
    if prisma:
        params.append(("connect_timeout", PRISMA_TIMEOUT))
        if target.pooled:
            params.append(("pool_timeout", PRISMA_TIMEOUT))
            params.append(("pgbouncer", "true"))
    if target.sslmode != SslMode.OMIT:
        params.append(("sslmode", target.sslmode.value))

    uri = (
        f"postgresql://{quote(target.role, safe='')}:{quote(target.password, safe='')}"
        f"@{target.host}/{quote(target.database, safe='')}"
    )
    if params:
        uri += "?" + urlencode(params)
    return uri


async def resolve_connection_target(
    api: ApiClient,
    project_id: str,
    branch: str | None,
    *,
    endpoint_type: EndpointType | None = None,
    role_name: str | None = None,
    database_name: str | None = None,
    pooled: bool = False,
    sslmode: SslMode = SslMode.REQUIRE,
) -> ConnectionTarget:
    parsed = parse_pit_branch(branch or "")
    branch_id = await resolve_branch_id(api, project_id, parsed.branch)

    endpoints = await api.list_branch_endpoints(project_id, branch_id)
    endpoint = select_endpoint(endpoints, endpoint_type, branch_id=branch_id)

    if role_name is None:
        roles = await api.list_roles(project_id, branch_id)
        role_name = pick_single(
            "role", [r.name for r in roles], option="--role-name", branch_id=branch_id
        )
    if database_name is None:
        databases = await api.list_databases(project_id, branch_id)
        database_name = pick_single(
            "database",
            [d.name for d in databases],
            option="--database-name",
            branch_id=branch_id,
        )

    password = await api.get_role_password(project_id, endpoint.branch_id, role_name)
    host = rewrite_host(
        endpoint, branch_id=branch_id, pooled=pooled, point_in_time=parsed.point
    )
    return ConnectionTarget(
        host=host,
        role=role_name,
        password=password,
        database=database_name,
        sslmode=sslmode,
        pooled=pooled and parsed.point.is_head,
        point_in_time=parsed.point,
    )
