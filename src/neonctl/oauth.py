"""OAuth2 authorization-code flow with PKCE against the platform's OIDC server.

The interactive login listens on a loopback port for exactly one browser
redirect, then exchanges the code for a token set. See RFC 8252 for the
native-app pattern and RFC 7636 for PKCE.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import hashlib
import logging
import secrets
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from neonctl.config import DEFAULT_CLIENT_ID
from neonctl.credentials import TokenSet
from neonctl.errors import AuthError, LoginTimeoutError

logger = logging.getLogger(__name__)

SERVER_TIMEOUT = 10.0
AUTH_TIMEOUT_SECONDS = 60
CALLBACK_PATH = "/callback"

# These scopes are always requested, whatever the client.
ALWAYS_PRESENT_SCOPES = ("openid", "offline", "offline_access")

NEONCTL_SCOPES = (
    *ALWAYS_PRESENT_SCOPES,
    "urn:neoncloud:projects:create",
    "urn:neoncloud:projects:read",
    "urn:neoncloud:projects:update",
    "urn:neoncloud:projects:delete",
    "urn:neoncloud:orgs:create",
    "urn:neoncloud:orgs:read",
    "urn:neoncloud:orgs:update",
    "urn:neoncloud:orgs:delete",
    "urn:neoncloud:orgs:permission",
)

_SUCCESS_PAGE = """<html>
<head><title>neonctl - Login Successful</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
  <h1>Login Successful!</h1>
  <p>You can close this window and return to the terminal.</p>
</body>
</html>
"""

_ERROR_PAGE = """<html>
<head><title>neonctl - Login Failed</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
  <h1>Login Failed</h1>
  <p>{error}</p>
</body>
</html>
"""


@dataclass(frozen=True)
class ServerMetadata:
    issuer: str
    authorization_endpoint: str
    token_endpoint: str


@dataclass(frozen=True)
class CallbackResult:
    code: str | None = None
    error: str | None = None


def generate_pkce() -> tuple[str, str]:
    """Return (code_verifier, S256 code_challenge)."""
    verifier = secrets.token_urlsafe(32)
    digest = hashlib.sha256(verifier.encode()).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
    return verifier, challenge


class CallbackListener:
    """Loopback HTTP listener that accepts a single OAuth redirect."""

    def __init__(self, expected_state: str) -> None:
        self.expected_state = expected_state
        self.result: asyncio.Future[CallbackResult] = (
            asyncio.get_running_loop().create_future()
        )
        self._server: asyncio.Server | None = None

    async def start(self) -> int:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        port = self._server.sockets[0].getsockname()[1]
        logger.debug("Listening on port %d", port)
        return port

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = await reader.readline()
            while True:
                line = await reader.readline()
                if line in (b"\r\n", b"\n", b""):
                    break
            await self._respond(request_line.decode("latin-1"), writer)
        except ConnectionError as e:
            logger.debug("Callback connection dropped: %s", e)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def _respond(self, request_line: str, writer: asyncio.StreamWriter) -> None:
        parts = request_line.split()
        if len(parts) < 2:
            await _write_response(writer, 400, "Bad Request", "")
            return
        method, target = parts[0], parts[1]
        url = urlsplit(target)
        if url.path != CALLBACK_PATH:
            await _write_response(writer, 404, "Not Found", "")
            return

        if method == "OPTIONS":
            await _write_response(
                writer,
                200,
                "OK",
                "",
                headers={
                    "Access-Control-Allow-Origin": "*",
                    "Access-Control-Allow-Methods": "GET, POST",
                    "Access-Control-Allow-Headers": "Content-Type",
                },
            )
            return

        logger.debug("Callback received: %s", url.path)
        if self.result.done():
            await _write_response(
                writer, 400, "Bad Request", _ERROR_PAGE.format(error="Login already handled")
            )
            return

        result = self._parse_callback(parse_qs(url.query))
        self.result.set_result(result)
        if result.error:
            await _write_response(
                writer, 400, "Bad Request", _ERROR_PAGE.format(error=result.error)
            )
        else:
            await _write_response(writer, 200, "OK", _SUCCESS_PAGE)

    def _parse_callback(self, params: dict[str, list[str]]) -> CallbackResult:
        if "error" in params:
            error = params["error"][0]
            description = params.get("error_description", [""])[0]
            return CallbackResult(error=f"{error}: {description}" if description else error)
        if params.get("state", [None])[0] != self.expected_state:
            return CallbackResult(error="OAuth state mismatch in callback")
        code = params.get("code", [None])[0]
        if not code:
            return CallbackResult(error="No authorization code received")
        return CallbackResult(code=code)


async def _write_response(
    writer: asyncio.StreamWriter,
    status: int,
    reason: str,
    body: str,
    *,
    headers: dict[str, str] | None = None,
) -> None:
    payload = body.encode()
    lines = [
        f"HTTP/1.1 {status} {reason}",
        "Content-Type: text/html; charset=utf-8",
        f"Content-Length: {len(payload)}",
        "Connection: close",
    ]
    lines.extend(f"{k}: {v}" for k, v in (headers or {}).items())
    writer.write(("\r\n".join(lines) + "\r\n\r\n").encode() + payload)
    await writer.drain()


def _token_set(tokens: dict[str, Any]) -> TokenSet:
    try:
        return TokenSet.from_token_response(tokens)
    except (TypeError, ValueError) as e:
        raise AuthError(f"Token endpoint returned an invalid expiry: {e}") from e


class OAuthClient:
    def __init__(
        self,
        oauth_host: str,
        client_id: str = DEFAULT_CLIENT_ID,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
        auth_timeout: float = AUTH_TIMEOUT_SECONDS,
    ) -> None:
        self.oauth_host = oauth_host.rstrip("/")
        self.client_id = client_id
        self._transport = transport
        self._open_browser = open_browser
        self.auth_timeout = auth_timeout

    @property
    def scopes(self) -> tuple[str, ...]:
        return NEONCTL_SCOPES if self.client_id == DEFAULT_CLIENT_ID else ALWAYS_PRESENT_SCOPES

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=SERVER_TIMEOUT, transport=self._transport)

    async def discover(self) -> ServerMetadata:
        logger.debug("Discovering oauth server")
        url = f"{self.oauth_host}/.well-known/openid-configuration"
        try:
            async with self._http() as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
            return ServerMetadata(
                issuer=data.get("issuer", self.oauth_host),
                authorization_endpoint=data["authorization_endpoint"],
                token_endpoint=data["token_endpoint"],
            )
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise AuthError(f"Failed to discover OAuth server at {self.oauth_host}: {e}") from e

    def authorization_url(
        self,
        metadata: ServerMetadata,
        *,
        redirect_uri: str,
        state: str,
        code_challenge: str,
    ) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{metadata.authorization_endpoint}?{urlencode(params)}"

    async def _token_request(self, metadata: ServerMetadata, data: dict[str, str]) -> dict:
        async with self._http() as client:
            response = await client.post(metadata.token_endpoint, data=data)
            response.raise_for_status()
            tokens = response.json()
        if not isinstance(tokens, dict):
            raise ValueError("token response is not a JSON object")
        return tokens

    async def exchange_code(
        self,
        metadata: ServerMetadata,
        code: str,
        code_verifier: str,
        redirect_uri: str,
    ) -> TokenSet:
        try:
            tokens = await self._token_request(
                metadata,
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": self.client_id,
                    "code_verifier": code_verifier,
                },
            )
        except (httpx.HTTPError, ValueError) as e:
            raise AuthError(f"Failed to exchange authorization code: {e}") from e

        token_set = _token_set(tokens)
        if not token_set.access_token:
            raise AuthError("Token endpoint returned no access token")
        return token_set

    async def refresh(self, token_set: TokenSet) -> TokenSet:
        if not token_set.refresh_token:
            raise AuthError("No refresh token stored")
        metadata = await self.discover()
        try:
            tokens = await self._token_request(
                metadata,
                {
                    "grant_type": "refresh_token",
                    "refresh_token": token_set.refresh_token,
                    "client_id": self.client_id,
                },
            )
        except (httpx.HTTPError, ValueError) as e:
            raise AuthError(f"Failed to refresh token: {e}") from e

        refreshed = _token_set(tokens)
        if not refreshed.access_token:
            raise AuthError("Refreshed token set has no access token")
        if refreshed.refresh_token is None:
            refreshed.refresh_token = token_set.refresh_token
        return refreshed

    async def login(self) -> TokenSet:
        """Run the browser flow once. Raises LoginTimeoutError or AuthError; never retries."""
        metadata = await self.discover()
        code_verifier, code_challenge = generate_pkce()
        state = secrets.token_urlsafe(16)

        logger.debug("Starting HTTP Server for callback")
        listener = CallbackListener(state)
        port = await listener.start()
        redirect_uri = f"http://127.0.0.1:{port}{CALLBACK_PATH}"
        try:
            auth_url = self.authorization_url(
                metadata, redirect_uri=redirect_uri, state=state, code_challenge=code_challenge
            )
            logger.info("Awaiting authentication in web browser.")
            logger.info("Auth Url: %s", auth_url)
            self._launch_browser(auth_url)
            try:
                result = await asyncio.wait_for(listener.result, timeout=self.auth_timeout)
            except TimeoutError:
                raise LoginTimeoutError(
                    f"Authentication timed out after {self.auth_timeout:g} seconds"
                ) from None
        finally:
            await listener.close()

        if result.error:
            raise AuthError(f"Authentication failed: {result.error}")
        assert result.code is not None
        return await self.exchange_code(metadata, result.code, code_verifier, redirect_uri)

    def _launch_browser(self, url: str) -> None:
        try:
            opened = self._open_browser(url)
        except webbrowser.Error:
            opened = False
        if opened is False:
            logger.error(
                "Failed to open web browser. "
                "Please copy & paste auth url to authenticate in browser."
            )
