"""Resolve user-supplied project and branch references to IDs."""

from __future__ import annotations

import logging

from neonctl.api import ApiClient, Branch
from neonctl.errors import AmbiguousError, NotFoundError
from neonctl.formats import looks_like_branch_id

logger = logging.getLogger(__name__)


def default_branch(branches: list[Branch]) -> Branch:
    """Pick the branch flagged as default, falling back to the legacy primary flag."""
    for flag in ("default", "primary"):
        for branch in branches:
            if getattr(branch, flag):
                return branch
    raise NotFoundError("No default branch found")


async def resolve_branch_id(api: ApiClient, project_id: str, branch: str | None) -> str:
    """Turn a branch name or ID into a branch ID.

    An empty reference means the project's default branch. Anything shaped like a
    branch ID is returned as-is; the API call that uses it validates existence.
    Names need exactly one listing and are matched case-sensitively.
    """
    if branch and looks_like_branch_id(branch):
        return branch

    branches = await api.list_branches(project_id)
    if not branch:
        return default_branch(branches).id

    for b in branches:
        if b.name == branch:
            logger.debug("Resolved branch %s to %s", branch, b.id)
            return b.id

    available = ", ".join(b.name for b in branches)
    raise NotFoundError(f"Branch {branch} not found.\nAvailable branches: {available}")


async def fill_single_project(api: ApiClient, project_id: str | None) -> str:
    """Return project_id, or the only project on the account when none was given."""
    if project_id:
        return project_id

    projects = await api.list_projects()
    if not projects:
        raise NotFoundError("No projects found")
    if len(projects) > 1:
        raise AmbiguousError(
            "Multiple projects found, please provide one with the --project-id option"
        )
    return projects[0]["id"]
