"""Tests for branch@point-in-time parsing and resolution."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from neonctl.errors import NotFoundError, PointInTimeParseError
from neonctl.point_in_time import (
    PointInTime,
    PointInTimeTag,
    parse_pit_branch,
    resolve_point_in_time,
)

NOW = datetime(2024, 6, 1, tzinfo=UTC)
PROJECT = "test-project-123"


class TestParse:
    def test_bare_name_is_head(self) -> None:
        parsed = parse_pit_branch("main")
        assert parsed.branch == "main"
        assert parsed.point == PointInTime()
        assert parsed.point.is_head

    def test_lsn(self) -> None:
        parsed = parse_pit_branch("main@0/1F56000")
        assert parsed.branch == "main"
        assert parsed.point.tag == PointInTimeTag.LSN
        assert parsed.point.lsn == "0/1F56000"

    def test_timestamp(self) -> None:
        parsed = parse_pit_branch("main@2024-01-01T00:00:00Z", now=NOW)
        assert parsed.point.tag == PointInTimeTag.TIMESTAMP
        assert parsed.point.timestamp == "2024-01-01T00:00:00Z"

    def test_splits_on_last_at_sign(self) -> None:
        parsed = parse_pit_branch("release@v2@0/1F56000")
        assert parsed.branch == "release@v2"
        assert parsed.point.lsn == "0/1F56000"

    def test_special_tokens_stay_unresolved(self) -> None:
        parsed = parse_pit_branch("^parent@0/1")
        assert parsed.branch == "^parent"
        assert parsed.point.lsn == "0/1"

    def test_empty_branch_part(self) -> None:
        parsed = parse_pit_branch("@0/1F56000")
        assert parsed.branch == ""
        assert parsed.point.tag == PointInTimeTag.LSN

    def test_invalid_qualifier(self) -> None:
        with pytest.raises(PointInTimeParseError, match="Invalid point in time 'yesterday'"):
            parse_pit_branch("main@yesterday")

    def test_empty_qualifier(self) -> None:
        with pytest.raises(PointInTimeParseError):
            parse_pit_branch("main@")

    def test_future_timestamp_rejected(self) -> None:
        with pytest.raises(PointInTimeParseError, match="can not be in future"):
            parse_pit_branch("main@2030-01-01T00:00:00Z", now=NOW)

    def test_offset_compared_in_utc(self) -> None:
        # 2024-06-01T01:00+02:00 is 2024-05-31T23:00Z, before NOW
        parsed = parse_pit_branch("main@2024-06-01T01:00:00+02:00", now=NOW)
        assert parsed.point.tag == PointInTimeTag.TIMESTAMP


class TestResolve:
    def test_name_resolved_with_one_listing(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(api, PROJECT, "dev@0/1F56000")

        result = asyncio.run(run())
        assert result.branch_id == "br-sunny-branch-123456"
        assert result.point.lsn == "0/1F56000"
        assert fake_api.count("GET", f"/projects/{PROJECT}/branches") == 1

    def test_id_needs_no_call(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(api, PROJECT, "br-sunny-branch-123456")

        result = asyncio.run(run())
        assert result.branch_id == "br-sunny-branch-123456"
        assert fake_api.calls == []

    def test_self(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(
                    api, PROJECT, "^self@0/1", target_branch_id="br-sunny-branch-123456"
                )

        result = asyncio.run(run())
        assert result.branch_id == "br-sunny-branch-123456"
        assert fake_api.calls == []

    def test_parent(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(
                    api, PROJECT, "^parent", target_branch_id="br-sunny-branch-123456"
                )

        result = asyncio.run(run())
        assert result.branch_id == "br-main-branch-123456"
        assert result.point.is_head
        assert fake_api.calls == [
            ("GET", f"/projects/{PROJECT}/branches/br-sunny-branch-123456")
        ]

    def test_parent_of_root_branch(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(
                    api, PROJECT, "^parent", target_branch_id="br-main-branch-123456"
                )

        with pytest.raises(PointInTimeParseError, match="has no parent"):
            asyncio.run(run())

    def test_special_token_needs_target(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(api, PROJECT, "^self@0/1")

        with pytest.raises(PointInTimeParseError, match="target branch"):
            asyncio.run(run())

    def test_unknown_branch(self, fake_api) -> None:
        async def run():
            async with fake_api.client() as api:
                return await resolve_point_in_time(api, PROJECT, "nope@0/1")

        with pytest.raises(NotFoundError, match="Branch nope not found"):
            asyncio.run(run())
