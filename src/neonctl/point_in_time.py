"""Parse `branch@qualifier` expressions and resolve them to branch IDs.

The qualifier after the last `@` is an LSN (`0/1F56000`) or an ISO-8601
timestamp. Without a qualifier the expression points at the branch head.
Two special branch tokens exist for restore-style operations, where a target
branch is already known: `^self` (the target itself) and `^parent`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime

from neonctl.api import ApiClient
from neonctl.enrichers import resolve_branch_id
from neonctl.errors import PointInTimeParseError
from neonctl.formats import looks_like_lsn, looks_like_timestamp, parse_timestamp

SELF_TOKEN = "^self"
PARENT_TOKEN = "^parent"


class PointInTimeTag(enum.Enum):
    HEAD = "head"
    LSN = "lsn"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class PointInTime:
    tag: PointInTimeTag = PointInTimeTag.HEAD
    lsn: str | None = None
    timestamp: str | None = None

    @property
    def is_head(self) -> bool:
        return self.tag == PointInTimeTag.HEAD


@dataclass(frozen=True)
class PointInTimeBranch:
    """A parsed expression; `branch` is still the raw name, ID or special token."""

    branch: str
    point: PointInTime


@dataclass(frozen=True)
class PointInTimeBranchId:
    branch_id: str
    point: PointInTime


def parse_pit_branch(value: str, *, now: datetime | None = None) -> PointInTimeBranch:
    split_index = value.rfind("@")
    if split_index == -1:
        return PointInTimeBranch(branch=value, point=PointInTime())

    branch, qualifier = value[:split_index], value[split_index + 1 :]
    if looks_like_lsn(qualifier):
        return PointInTimeBranch(branch, PointInTime(tag=PointInTimeTag.LSN, lsn=qualifier))

    if not looks_like_timestamp(qualifier):
        raise PointInTimeParseError(
            f"Invalid point in time '{qualifier}' in {value}: "
            "expected an LSN (0/1F56000) or an ISO-8601 timestamp (2021-01-01T00:00:00Z)"
        )
    ts = parse_timestamp(qualifier)
    if ts > (now or datetime.now(UTC)):
        raise PointInTimeParseError(f"Timestamp can not be in future - {value}")
    return PointInTimeBranch(
        branch, PointInTime(tag=PointInTimeTag.TIMESTAMP, timestamp=qualifier)
    )


async def resolve_point_in_time(
    api: ApiClient,
    project_id: str,
    value: str,
    *,
    target_branch_id: str | None = None,
) -> PointInTimeBranchId:
    """Parse `value` and resolve its branch part.

    `^self` and `^parent` are only meaningful relative to `target_branch_id`.
    `^parent` costs one API call for the target's record.
    """
    parsed = parse_pit_branch(value)

    if parsed.branch in (SELF_TOKEN, PARENT_TOKEN):
        if target_branch_id is None:
            raise PointInTimeParseError(
                f"{parsed.branch} can only be used when a target branch is given"
            )
        if parsed.branch == SELF_TOKEN:
            branch_id = target_branch_id
        else:
            target = await api.get_branch(project_id, target_branch_id)
            if target.parent_id is None:
                raise PointInTimeParseError(f"Branch {target_branch_id} has no parent")
            branch_id = target.parent_id
    else:
        branch_id = await resolve_branch_id(api, project_id, parsed.branch)

    return PointInTimeBranchId(branch_id=branch_id, point=parsed.point)
