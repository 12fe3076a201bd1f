"""State shared by all commands: settings, auth, API access and the error handler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click

from neonctl.api import ApiClient
from neonctl.auth import SOURCE_LOGIN, SOURCE_REFRESHED, SOURCE_STORED, AuthManager
from neonctl.config import Settings
from neonctl.context import Context, current_context_file, read_context_file
from neonctl.credentials import CredentialStore
from neonctl.enrichers import fill_single_project
from neonctl.errors import ApiError, NeonCtlError
from neonctl.oauth import OAuthClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _ClickHandler(logging.Handler):
    """Route log records to stderr through click so test runners capture them."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def configure_logging(debug: bool) -> None:
    root = logging.getLogger("neonctl")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = _ClickHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.propagate = False


def fail(message: str) -> NoReturn:
    click.echo(f"ERROR: {message}", err=True)
    raise SystemExit(1)


@dataclass
class CliContext:
    settings: Settings
    command: str | None = None
    # Where the current command's bearer token came from; set by api().
    token_source: str | None = field(default=None, init=False)

    @property
    def store(self) -> CredentialStore:
        return CredentialStore(self.settings.credentials_path)

    @property
    def context_path(self) -> Path:
        return self.settings.context_file or current_context_file()

    def context(self) -> Context:
        return read_context_file(self.context_path)

    def auth_manager(self) -> AuthManager:
        oauth = OAuthClient(self.settings.oauth_host, self.settings.client_id)
        return AuthManager(self.store, oauth, lookup_user_id=self._lookup_user_id)

    async def _lookup_user_id(self, access_token: str) -> str | None:
        async with ApiClient(self.settings.api_host, access_token) as api:
            user = await api.get_current_user()
        return user.get("id")

    async def api(self) -> ApiClient:
        """Authenticate (if needed) and return a client. Caller closes it."""
        manager = self.auth_manager()
        token = await manager.ensure_auth(api_key=self.settings.api_key, command=self.command)
        self.token_source = manager.token_source
        return ApiClient(self.settings.api_host, token)

    async def resolve_project_id(self, api: ApiClient, project_id: str | None) -> str:
        return await fill_single_project(api, project_id or self.context().project_id)

    def context_branch(self, project_id: str) -> str | None:
        """Branch from the context file, only if it belongs to `project_id`."""
        context = self.context()
        return context.branch_id if context.project_id == project_id else None

    def run(self, make_coro: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """Run one command coroutine; the single place errors become exit codes.

        A 401 for a token read from the credential file gets one retry with the
        file removed, which forces a fresh login. A 401 for a token that was just
        refreshed or obtained by login is fatal, and leaves no credential file behind.
        """
        self.token_source = None
        try:
            try:
                return asyncio.run(make_coro())
            except ApiError as e:
                if e.status_code != 401 or self.token_source != SOURCE_STORED:
                    raise
                logger.debug("API rejected the stored token, re-authenticating")
                self.store.remove()
                return asyncio.run(make_coro())
        except ApiError as e:
            if e.status_code == 401 and self.token_source in (SOURCE_LOGIN, SOURCE_REFRESHED):
                self.store.remove()
                fail(
                    f"Authentication failed: {e}. Stored credentials were removed; "
                    "run the command again to log in."
                )
            fail(str(e))
        except NeonCtlError as e:
            fail(str(e))
