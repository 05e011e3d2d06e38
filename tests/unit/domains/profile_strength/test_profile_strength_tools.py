"""Unit tests for the profile strength MCP tools."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from conftest import FIXED_NOW, StubDataSource, full_goal_rows
from lifeos.core.server.app import create_app
from lifeos.domains.profile_strength.domain_logic.strength_models import AREA_KEYS


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    """Decode the JSON text a tool returned."""
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


@pytest.fixture
def source() -> StubDataSource:
    return StubDataSource()


@pytest.fixture
def client(source, repository, audit_logger):
    """MCP client over a server wired to in-memory storage and stub rows."""
    mcp = create_app(
        data_source_override=source,
        repository_override=repository,
        audit_logger_override=audit_logger,
        clock=lambda: FIXED_NOW,
    )
    return Client(mcp)


def test_profile_strength_payload(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool("profile_strength", {"user_id": "u1"}))
            assert data["status"] == "ok"
            assert data["overall_percent"] == 0
            assert data["used_fallback_data"] is False
            assert [row["area"] for row in data["areas"]] == list(AREA_KEYS)
            assert data["areas"][0]["reasons"] == ["no_data"]
            assert data["global_next_task"]["id"] == "profile-strength-goals-start"
            assert data["computed_at"] == FIXED_NOW.isoformat()
            assert data["provenance"]["data_source"] == "stub"
    _run(_check())


def test_profile_strength_does_not_store(client, repository):
    async def _check():
        async with client:
            await client.call_tool("profile_strength", {"user_id": "u1"})
    _run(_check())
    assert repository.count_snapshots() == 0


def test_refresh_awards_xp(client, source):
    async def _check():
        async with client:
            first = _payload(await client.call_tool("refresh_profile_strength", {"user_id": "u1"}))
            assert first["xp_gained"] == 0
            assert first["previous_overall_percent"] is None

            source.domains["goals"] = full_goal_rows()
            second = _payload(await client.call_tool("refresh_profile_strength", {"user_id": "u1"}))
            assert second["xp_gained"] == 125
            assert second["total_xp"] == 125
            assert second["previous_overall_percent"] == 0
            assert [e["kind"] for e in second["xp_events"]] == ["task", "bonus"]
            assert second["snapshot_id"]

            ledger = _payload(await client.call_tool("profile_strength_xp", {"user_id": "u1"}))
            assert ledger["total_xp"] == 125
            assert ledger["state"]["completedTaskIds"] == ["profile-strength-goals-start"]
    _run(_check())


def test_unavailable_area_is_reported(client, source):
    source.domains["checkins"] = RuntimeError("checkins down")

    async def _check():
        async with client:
            data = _payload(await client.call_tool("profile_strength", {}))
            assert data["overall_percent"] is None
            assert data["used_fallback_data"] is True
            life_wheel = next(row for row in data["areas"] if row["area"] == "life_wheel")
            assert life_wheel["score"] is None
            assert life_wheel["reasons"] == ["error_fallback"]
    _run(_check())


def test_tool_calls_are_audited(client, audit_logger):
    async def _check():
        async with client:
            await client.call_tool("profile_strength", {"user_id": "alice"})
    _run(_check())
    events = audit_logger.get_events(tool_name="profile_strength")
    assert len(events) == 1
    assert events[0]["status"] == "success"
    assert json.loads(events[0]["metadata_json"]) == {"overall_percent": 0}


def test_reset_requires_confirmation(client, source, repository):
    async def _check():
        async with client:
            await client.call_tool("refresh_profile_strength", {"user_id": "u1"})
            source.domains["goals"] = full_goal_rows()
            await client.call_tool("refresh_profile_strength", {"user_id": "u1"})

            cancelled = _payload(await client.call_tool(
                "reset_profile_strength_xp", {"user_id": "u1"}
            ))
            assert cancelled["status"] == "cancelled"
            assert repository.total_xp("u1") == 125

            reset = _payload(await client.call_tool(
                "reset_profile_strength_xp", {"user_id": "u1", "confirm": "RESET"}
            ))
            assert reset["status"] == "reset"
            assert reset["awards_removed"] == 2
    _run(_check())
    assert repository.total_xp("u1") == 0
    assert repository.count_snapshots("u1") == 2


def test_delete_requires_confirmation(client, repository, audit_logger):
    async def _check():
        async with client:
            await client.call_tool("refresh_profile_strength", {"user_id": "u1"})

            cancelled = _payload(await client.call_tool(
                "delete_profile_strength_data", {"user_id": "u1", "confirm": "yes"}
            ))
            assert cancelled["status"] == "cancelled"

            deleted = _payload(await client.call_tool(
                "delete_profile_strength_data", {"user_id": "u1", "confirm": "DELETE_ALL"}
            ))
            assert deleted["status"] == "all_deleted"
            assert deleted["deleted"]["snapshots"] == 1
    _run(_check())
    assert repository.count_snapshots("u1") == 0
    assert len(audit_logger.get_events(action="data_delete")) == 1
