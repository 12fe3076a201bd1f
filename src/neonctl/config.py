"""Runtime settings: global CLI options with environment fallbacks."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_API_HOST = "https://console.neon.tech/api/v2"
DEFAULT_OAUTH_HOST = "https://oauth2.neon.tech"
DEFAULT_CLIENT_ID = "neonctl"
CREDENTIALS_FILE = "credentials.json"


def default_config_dir() -> Path:
    """$XDG_CONFIG_HOME/neonctl, or ~/.config/neonctl."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "neonctl"


def is_ci() -> bool:
    value = os.environ.get("CI", "")
    return bool(value) and value.lower() != "false"


@dataclass
class Settings:
    api_host: str = DEFAULT_API_HOST
    oauth_host: str = DEFAULT_OAUTH_HOST
    client_id: str = DEFAULT_CLIENT_ID
    config_dir: Path | None = None
    api_key: str | None = None
    context_file: Path | None = None
    output: str = "table"
    debug: bool = False

    @property
    def credentials_path(self) -> Path:
        return (self.config_dir or default_config_dir()) / CREDENTIALS_FILE
