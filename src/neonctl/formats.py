"""Shape predicates for branch IDs, LSNs and timestamps."""

from __future__ import annotations

import re
from datetime import datetime

_BRANCH_ID_RE = re.compile(r"^br-[a-z]+(?:-[a-z]+)+-[a-z0-9]{6,}$")
_LSN_RE = re.compile(r"^[a-fA-F0-9]{1,8}/[a-fA-F0-9]{1,8}$")
# fromisoformat alone accepts bare dates and "20210101", which collide with branch names.
_ISO8601_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?([+-]\d{2}:\d{2}|Z)$"
)


def looks_like_branch_id(value: str) -> bool:
    """True for IDs like br-flower-sunshine-123456 or br-bold-recipe-a13oexw7."""
    return bool(_BRANCH_ID_RE.match(value))


def looks_like_lsn(value: str) -> bool:
    """True for Postgres LSNs in hi/lo hex form, e.g. 0/1F56000."""
    return bool(_LSN_RE.match(value))


def looks_like_timestamp(value: str) -> bool:
    if not _ISO8601_RE.match(value):
        return False
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_timestamp(value: str) -> datetime:
    """Parse a string accepted by looks_like_timestamp into an aware datetime."""
    return datetime.fromisoformat(value)
