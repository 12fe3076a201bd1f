"""CLI tests for `neonctl branches`."""

from __future__ import annotations

import json
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from neonctl.cli import main

PROJECT = "test-project-123"
MAIN_ID = "br-main-branch-123456"
DEV_ID = "br-sunny-branch-123456"


def _invoke(fake_api, tmp_path, *args: str):
    runner = CliRunner()
    with patch("neonctl.cli._shared.ApiClient", fake_api.factory()):
        return runner.invoke(
            main,
            [
                "--api-key", "test-key",
                "--config-dir", str(tmp_path / "config"),
                "--context-file", str(tmp_path / ".neon"),
                *args,
            ],
        )


def _accept_restore(fake_api, branch_id: str) -> None:
    branch = next(
        b for b in fake_api.routes[("GET", f"/projects/{PROJECT}/branches")]["branches"]
        if b["id"] == branch_id
    )
    fake_api.routes[("POST", f"/projects/{PROJECT}/branches/{branch_id}/restore")] = {
        "branch": branch,
        "operations": [],
    }


class TestList:
    def test_json(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "-o", "json", "branches", "list")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [b["name"] for b in data] == ["main", "dev", "release@v2"]
        assert data[1]["parent_id"] == MAIN_ID

    def test_table(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "branches", "list")
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0].split(" | ")[0].strip() == "id"
        assert lines[2].startswith(MAIN_ID)
        assert "true" in lines[2]
        assert len(lines) == 5


class TestGet:
    def test_default_branch(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "-o", "json", "branches", "get")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["id"] == MAIN_ID

    def test_by_name_yaml(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "-o", "yaml", "branches", "get", "dev")
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(result.stdout)
        assert data["id"] == DEV_ID
        assert data["default"] is False


class TestRestore:
    def test_parent_at_lsn(self, fake_api, tmp_path) -> None:
        _accept_restore(fake_api, DEV_ID)
        result = _invoke(
            fake_api, tmp_path, "-o", "json", "branches", "restore", "dev", "^parent@0/1F56000"
        )
        assert result.exit_code == 0, result.output
        assert fake_api.bodies == [{"source_branch_id": MAIN_ID, "source_lsn": "0/1F56000"}]
        assert json.loads(result.stdout)["name"] == "dev"

    def test_self_at_timestamp_preserving(self, fake_api, tmp_path) -> None:
        _accept_restore(fake_api, DEV_ID)
        result = _invoke(
            fake_api,
            tmp_path,
            "branches", "restore", "dev", "^self@2024-01-01T00:00:00Z",
            "--preserve-under-name", "dev-old",
        )
        assert result.exit_code == 0, result.output
        assert fake_api.bodies == [
            {
                "source_branch_id": DEV_ID,
                "source_timestamp": "2024-01-01T00:00:00Z",
                "preserve_under_name": "dev-old",
            }
        ]

    def test_other_branch_head(self, fake_api, tmp_path) -> None:
        _accept_restore(fake_api, DEV_ID)
        result = _invoke(fake_api, tmp_path, "branches", "restore", "dev", "main")
        assert result.exit_code == 0, result.output
        assert fake_api.bodies == [{"source_branch_id": MAIN_ID}]

    def test_own_head_rejected(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "branches", "restore", "main", "^self")
        assert result.exit_code == 1
        assert "Cannot restore a branch to its own head" in result.stderr
        assert fake_api.bodies == []

    def test_parent_of_root_branch(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "branches", "restore", "main", "^parent@0/1")
        assert result.exit_code == 1
        assert f"ERROR: Branch {MAIN_ID} has no parent" in result.stderr

    def test_api_error_message(self, fake_api, tmp_path) -> None:
        result = _invoke(fake_api, tmp_path, "branches", "restore", "dev", "main")
        assert result.exit_code == 1
        assert "ERROR: Not found:" in result.stderr

    def test_malformed_restore_response(self, fake_api, tmp_path) -> None:
        fake_api.routes[("POST", f"/projects/{PROJECT}/branches/{DEV_ID}/restore")] = {
            "operations": []
        }
        result = _invoke(fake_api, tmp_path, "branches", "restore", "dev", "main")
        assert result.exit_code == 1
        assert "ERROR: Unexpected response from POST" in result.stderr
        assert "no 'branch'" in result.stderr
