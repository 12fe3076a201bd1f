"""Root conftest: a fake control-plane API and an isolated environment."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from functools import partial
from typing import Any

import httpx
import pytest

from neonctl.api import ApiClient

PROJECT_ID = "test-project-123"
API_HOST = "https://api.test/api/v2"

MAIN = {
    "id": "br-main-branch-123456",
    "name": "main",
    "default": True,
    "primary": True,
    "parent_id": None,
    "created_at": "2024-01-01T00:00:00Z",
}
DEV = {
    "id": "br-sunny-branch-123456",
    "name": "dev",
    "default": False,
    "parent_id": "br-main-branch-123456",
    "created_at": "2024-02-01T00:00:00Z",
}
RELEASE = {
    "id": "br-cloudy-branch-a13oexw7",
    "name": "release@v2",
    "default": False,
    "parent_id": "br-main-branch-123456",
    "created_at": "2024-03-01T00:00:00Z",
}

Route = dict[str, Any] | Callable[[httpx.Request], httpx.Response]


def _branch_routes(branch: dict[str, Any]) -> dict[tuple[str, str], Route]:
    base = f"/projects/{PROJECT_ID}/branches/{branch['id']}"
    return {("GET", base): {"branch": branch}}


def default_routes() -> dict[tuple[str, str], Route]:
    p = f"/projects/{PROJECT_ID}"
    routes: dict[tuple[str, str], Route] = {
        ("GET", "/projects"): {"projects": [{"id": PROJECT_ID, "name": "test"}]},
        ("GET", "/users/me"): {
            "id": "user-1",
            "login": "jdoe",
            "email": "jdoe@example.com",
            "name": "Jane Doe",
            "projects_limit": 10,
        },
        ("GET", f"{p}/branches"): {"branches": [MAIN, DEV, RELEASE]},
        ("GET", f"{p}/branches/{MAIN['id']}/endpoints"): {
            "endpoints": [
                {
                    "id": "ep-main-123456",
                    "host": "ep-main-123456.us-east-2.aws.neon.tech",
                    "branch_id": MAIN["id"],
                    "type": "read_write",
                }
            ]
        },
        ("GET", f"{p}/branches/{DEV['id']}/endpoints"): {
            "endpoints": [
                {
                    "id": "ep-dev-ro-123456",
                    "host": "ep-dev-ro-123456.us-east-2.aws.neon.tech",
                    "branch_id": DEV["id"],
                    "type": "read_only",
                },
                {
                    "id": "ep-dev-rw-123456",
                    "host": "ep-dev-rw-123456.us-east-2.aws.neon.tech",
                    "branch_id": DEV["id"],
                    "type": "read_write",
                },
            ]
        },
        ("GET", f"{p}/branches/{MAIN['id']}/roles"): {"roles": [{"name": "neondb_owner"}]},
        ("GET", f"{p}/branches/{DEV['id']}/roles"): {
            "roles": [{"name": "alice"}, {"name": "bob"}]
        },
        ("GET", f"{p}/branches/{MAIN['id']}/databases"): {
            "databases": [{"name": "neondb", "owner_name": "neondb_owner"}]
        },
        ("GET", f"{p}/branches/{DEV['id']}/databases"): {
            "databases": [{"name": "neondb", "owner_name": "alice"}]
        },
        ("GET", f"{p}/branches/{MAIN['id']}/roles/neondb_owner/reveal_password"): {
            "password": "s3cret"
        },
        ("GET", f"{p}/branches/{DEV['id']}/roles/alice/reveal_password"): {
            "password": "al1ce"
        },
    }
    for branch in (MAIN, DEV, RELEASE):
        routes.update(_branch_routes(branch))
    return routes


class FakeApi:
    """In-memory control plane served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes = default_routes()
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[Any] = []
        self.tokens: list[str] = []
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v2")
        key = (request.method, path)
        self.calls.append(key)
        self.tokens.append(request.headers.get("Authorization", "").removeprefix("Bearer "))
        if request.content:
            self.bodies.append(json.loads(request.content))
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"message": f"Not found: {path}"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def client(self, api_key: str = "test-key") -> ApiClient:
        return ApiClient(API_HOST, api_key, transport=self.transport)

    def factory(self) -> Callable[..., ApiClient]:
        """Drop-in replacement for the ApiClient class, bound to this fake."""
        return partial(ApiClient, transport=self.transport)

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real config dir, env credentials and CI detection."""
    for var in ("NEON_API_KEY", "NEON_CONFIG_DIR", "NEON_CONTEXT_FILE", "CI", "NEONCTL_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    yield
    # The CLI installs its own handler and stops propagation; undo that for caplog.
    logger = logging.getLogger("neonctl")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
