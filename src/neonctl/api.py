"""Async client for the control-plane REST API.

Only the operations the CLI needs are exposed. Responses are mapped onto small
read-only records; anything else stays as plain dicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from neonctl import __version__
from neonctl.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Branch:
    id: str
    name: str
    default: bool = False
    primary: bool = False
    parent_id: str | None = None
    created_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Branch:
        return cls(
            id=data["id"],
            name=data["name"],
            default=bool(data.get("default", False)),
            primary=bool(data.get("primary", False)),
            parent_id=data.get("parent_id"),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class Endpoint:
    id: str
    host: str
    branch_id: str
    type: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Endpoint:
        return cls(
            id=data["id"],
            host=data["host"],
            branch_id=data["branch_id"],
            type=data.get("type", "read_write"),
        )


@dataclass(frozen=True)
class Role:
    name: str


@dataclass(frozen=True)
class Database:
    name: str
    owner_name: str | None = None


class ApiClient:
    """Bearer-authenticated client. Use as an async context manager."""

    def __init__(
        self,
        api_host: str,
        api_key: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=api_host.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "User-Agent": f"neonctl/{__version__}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, expect: str | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        """Send one request and return the JSON object body.

        Non-2xx statuses and 2xx bodies that are not a JSON object (or lack the
        `expect` key) raise ApiError.
        """
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(0, f"Request to {path} failed: {e}") from e
        if response.is_error:
            raise ApiError(response.status_code, _error_message(response))
        try:
            data = response.json()
        except ValueError:
            data = None
        unexpected = f"Unexpected response from {method} {path}"
        if not isinstance(data, dict):
            raise ApiError(response.status_code, f"{unexpected}: not a JSON object")
        if expect is not None and expect not in data:
            raise ApiError(response.status_code, f"{unexpected}: no '{expect}'")
        return data

    # -- Projects / users -------------------------------------------------------

    async def list_projects(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/projects")
        return data.get("projects", [])

    async def get_current_user(self) -> dict[str, Any]:
        return await self._request("GET", "/users/me")

    # -- Branches ---------------------------------------------------------------

    async def list_branches(self, project_id: str) -> list[Branch]:
        data = await self._request("GET", f"/projects/{project_id}/branches")
        return [Branch.from_api(b) for b in data.get("branches", [])]

    async def get_branch(self, project_id: str, branch_id: str) -> Branch:
        data = await self._request(
            "GET", f"/projects/{project_id}/branches/{branch_id}", expect="branch"
        )
        return Branch.from_api(data["branch"])

    async def restore_branch(
        self, project_id: str, branch_id: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/projects/{project_id}/branches/{branch_id}/restore",
            expect="branch",
            json=body,
        )

    # -- Branch children --------------------------------------------------------

    async def list_branch_endpoints(self, project_id: str, branch_id: str) -> list[Endpoint]:
        data = await self._request(
            "GET", f"/projects/{project_id}/branches/{branch_id}/endpoints"
        )
        return [Endpoint.from_api(e) for e in data.get("endpoints", [])]

    async def list_roles(self, project_id: str, branch_id: str) -> list[Role]:
        data = await self._request("GET", f"/projects/{project_id}/branches/{branch_id}/roles")
        return [Role(name=r["name"]) for r in data.get("roles", [])]

    async def list_databases(self, project_id: str, branch_id: str) -> list[Database]:
        data = await self._request(
            "GET", f"/projects/{project_id}/branches/{branch_id}/databases"
        )
        return [
            Database(name=d["name"], owner_name=d.get("owner_name"))
            for d in data.get("databases", [])
        ]

    async def get_role_password(self, project_id: str, branch_id: str, role_name: str) -> str:
        data = await self._request(
            "GET",
            f"/projects/{project_id}/branches/{branch_id}/roles/{quote(role_name, safe='')}"
            "/reveal_password",
            expect="password",
        )
        return data["password"]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code} for {response.request.method} {response.request.url.path}"
