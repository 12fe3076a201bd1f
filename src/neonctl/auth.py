"""Decide which bearer token a command runs with.

States per invocation:

    no credentials ──────────────► login ──► authenticated
    stored, unexpired ───────────────────► authenticated
    stored, expired ──► refresh ──ok─────► authenticated
                               └─failed─► login ──► authenticated

A stored token that is still inside its lifetime is used without any
network call. If the API rejects it later, the CLI's top-level handler
deals with that (see neonctl.cli._shared); `token_source` tells it whether
the token came from the credential file.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from neonctl.config import is_ci
from neonctl.credentials import CredentialStore, TokenSet
from neonctl.errors import ApiError, AuthError, CredentialsError
from neonctl.oauth import OAuthClient

logger = logging.getLogger(__name__)

LOGIN_COMMANDS = frozenset({"auth", "login"})

# Values of AuthManager.token_source.
SOURCE_API_KEY = "api_key"
SOURCE_STORED = "stored"
SOURCE_REFRESHED = "refreshed"
SOURCE_LOGIN = "login"

# Given an access token, return the user ID to store alongside it.
UserIdLookup = Callable[[str], Awaitable[str | None]]


class AuthManager:
    def __init__(
        self,
        store: CredentialStore,
        oauth: OAuthClient,
        *,
        lookup_user_id: UserIdLookup | None = None,
    ) -> None:
        self.store = store
        self.oauth = oauth
        self._lookup_user_id = lookup_user_id
        self.token_source: str | None = None

    async def ensure_auth(self, *, api_key: str | None = None, command: str | None = None) -> str:
        """Return a bearer token for the current command ("" for the login command itself)."""
        if api_key:
            logger.debug("using an API key to authorize requests")
            self.token_source = SOURCE_API_KEY
            return api_key
        self.token_source = None
        if command in LOGIN_COMMANDS:
            return ""

        try:
            token_set = self.store.load()
        except CredentialsError as e:
            logger.debug("%s, starting authentication", e)
            token_set = None

        if token_set is None:
            logger.debug("No usable credentials in %s, starting authentication", self.store.path)
            return await self._login_token()

        if token_set.expired():
            logger.debug("Token is expired, attempting refresh")
            try:
                refreshed = await self.refresh(token_set)
                self.token_source = SOURCE_REFRESHED
                return refreshed.access_token
            except AuthError as e:
                logger.debug("Failed to refresh token: %s", e)
                # A revoked refresh token must not be retried by the next invocation.
                self.store.remove()
                logger.debug("Auth failed, starting new flow")
                return await self._login_token()

        self.token_source = SOURCE_STORED
        return token_set.access_token

    async def _login_token(self) -> str:
        token_set = await self.login()
        self.token_source = SOURCE_LOGIN
        return token_set.access_token

    async def refresh(self, token_set: TokenSet) -> TokenSet:
        refreshed = await self.oauth.refresh(token_set)
        await self._persist(refreshed)
        logger.debug("Token refresh successful")
        return refreshed

    async def login(self, *, force: bool = False) -> TokenSet:
        """Interactive browser login. Refused in CI unless forced (the explicit `auth` command)."""
        if not force and is_ci():
            raise AuthError("Cannot run interactive auth in CI")
        token_set = await self.oauth.login()
        await self._persist(token_set)
        logger.info("Auth complete")
        return token_set

    async def _persist(self, token_set: TokenSet) -> None:
        if self._lookup_user_id is not None:
            try:
                token_set.user_id = await self._lookup_user_id(token_set.access_token)
            except ApiError as e:
                raise AuthError(f"Failed to fetch the current user: {e}") from e
        self.store.save(token_set)
