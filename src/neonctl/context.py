"""The `.neon` context file: default project and branch for the current directory tree."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

CONTEXT_FILE = ".neon"
_CHECK_FILES = (CONTEXT_FILE, "package.json", "pyproject.toml", ".git")


@dataclass
class Context:
    project_id: str | None = None
    branch_id: str | None = None


def current_context_file(cwd: Path | None = None) -> Path:
    """Nearest directory (up to, not including, home or /) that looks like a project root."""
    start = (cwd or Path.cwd()).resolve()
    home = Path.home().resolve()
    current = start
    while current != home and current.parent != current:
        if any((current / name).exists() for name in _CHECK_FILES):
            return current / CONTEXT_FILE
        current = current.parent
    return start / CONTEXT_FILE


def read_context_file(path: Path) -> Context:
    """Unreadable or malformed files count as an empty context."""
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return Context()
    if not isinstance(data, dict):
        return Context()
    return Context(
        project_id=data.get("projectId") or None,
        branch_id=data.get("branchId") or None,
    )


def update_context_file(path: Path, context: Context) -> None:
    data: dict[str, str] = {}
    if context.project_id:
        data["projectId"] = context.project_id
    if context.branch_id:
        data["branchId"] = context.branch_id
    path.write_text(json.dumps(data, indent=2))
