"""
Unit tests for the workspace path cache.

Tests cover:
- First occurrence wins for contested names
- TTL staleness and background refresh from get_cached()
- Single-flight refresh under concurrent callers
- Failed reads keep the previous mapping and timestamp
"""

import asyncio

import pytest

from zed_switcher.errors import CommandTimeoutError, ParseFailureError
from zed_switcher.services.workspace_cache import (
    WorkspacePathCache,
    parse_workspace_paths,
    workspace_name,
)


class TestParseWorkspacePaths:

    def test_most_recent_path_owns_contested_name(self, workspace_db_output):
        mapping = parse_workspace_paths(workspace_db_output)

        assert mapping == {
            "myapp": "/Users/x/myapp",
            "foo": "/Users/x/foo",
            "bar": "/Users/x/bar",
        }

    def test_empty_output_is_empty_mapping(self):
        assert parse_workspace_paths("") == {}
        assert parse_workspace_paths("\n\n") == {}

    def test_non_path_rows_are_skipped(self):
        mapping = parse_workspace_paths("garbage\n/Users/x/ok\n")
        assert mapping == {"ok": "/Users/x/ok"}

    def test_output_without_any_path_is_parse_failure(self):
        with pytest.raises(ParseFailureError):
            parse_workspace_paths("Error: no such table: workspaces\n")

    def test_workspace_name_ignores_trailing_slash(self):
        assert workspace_name("/Users/x/bar/") == "bar"
        assert workspace_name("/Users/x/bar") == "bar"


@pytest.mark.asyncio
async def test_get_fresh_queries_when_never_loaded(make_queue, clock, workspace_db_output):
    queue = make_queue({"workspace-db": workspace_db_output})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    mapping = await cache.get_fresh()

    assert mapping["myapp"] == "/Users/x/myapp"
    assert cache.last_updated == clock.now
    assert queue.commands[0].argv[:3] == ("sqlite3", "-readonly", "/tmp/db.sqlite")
    assert "ORDER BY timestamp DESC" in queue.commands[0].argv[3]


@pytest.mark.asyncio
async def test_fresh_cache_does_not_query(make_queue, clock, workspace_db_output):
    queue = make_queue({"workspace-db": workspace_db_output})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)
    await cache.get_fresh()

    clock.advance(59)
    assert not cache.is_stale
    assert cache.get_cached()["foo"] == "/Users/x/foo"
    await cache.get_fresh()

    assert len(queue.commands) == 1


@pytest.mark.asyncio
async def test_get_cached_returns_immediately_and_refreshes_in_background(make_queue, clock, workspace_db_output):
    queue = make_queue({"workspace-db": workspace_db_output})
    queue.gate = asyncio.Event()
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    assert cache.get_cached() == {}
    assert cache.is_refreshing

    # A second stale read attaches to the same refresh
    assert cache.get_cached() == {}

    queue.gate.set()
    mapping = await cache.refresh()

    assert mapping["bar"] == "/Users/x/bar"
    assert cache.get_cached()["bar"] == "/Users/x/bar"
    assert len(queue.commands) == 1


@pytest.mark.asyncio
async def test_concurrent_get_fresh_issue_one_query(make_queue, clock, workspace_db_output):
    queue = make_queue({"workspace-db": workspace_db_output})
    queue.gate = asyncio.Event()
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    callers = [asyncio.create_task(cache.get_fresh()) for _ in range(10)]
    cache.get_cached()
    await asyncio.sleep(0)
    queue.gate.set()
    results = await asyncio.gather(*callers)

    assert len(queue.commands) == 1
    assert all(result == results[0] for result in results)
    assert cache.get_stats()["queries"] == 1
    assert not cache.is_refreshing


@pytest.mark.asyncio
async def test_stale_cache_refreshes_after_ttl(make_queue, clock):
    outputs = iter(["/Users/x/old\n", "/Users/x/new\n"])
    queue = make_queue({"workspace-db": lambda command: next(outputs)})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    assert await cache.get_fresh() == {"old": "/Users/x/old"}
    clock.advance(61)
    assert cache.is_stale
    assert await cache.get_fresh() == {"new": "/Users/x/new"}
    assert len(queue.commands) == 2


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_mapping(make_queue, clock, workspace_db_output, db_failure):
    queue = make_queue({"workspace-db": workspace_db_output})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)
    before = await cache.get_fresh()
    loaded_at = cache.last_updated

    clock.advance(120)
    queue.responses["workspace-db"] = db_failure

    assert await cache.get_fresh() == before
    assert cache.get_cached() == before
    await cache.refresh()
    assert cache.last_updated == loaded_at
    assert cache.is_stale
    assert cache.get_stats()["stale_served"] >= 1


@pytest.mark.asyncio
async def test_timeout_and_parse_failure_are_absorbed(make_queue, clock):
    queue = make_queue({"workspace-db": CommandTimeoutError("workspace-db", 3.0)})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    assert await cache.get_fresh() == {}
    assert cache.last_updated is None

    queue.responses["workspace-db"] = "not a path\n"
    assert await cache.get_fresh() == {}
    assert cache.last_updated is None


@pytest.mark.asyncio
async def test_returned_mapping_is_a_copy(make_queue, clock):
    queue = make_queue({"workspace-db": "/Users/x/foo\n"})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)

    mapping = await cache.get_fresh()
    mapping["foo"] = "/elsewhere"

    assert cache.get_cached() == {"foo": "/Users/x/foo"}


@pytest.mark.asyncio
async def test_invalidate_forces_next_refresh(make_queue, clock):
    queue = make_queue({"workspace-db": "/Users/x/foo\n"})
    cache = WorkspacePathCache(queue, "/tmp/db.sqlite", ttl=60, clock=clock)
    await cache.get_fresh()

    cache.invalidate()

    assert cache.is_stale
    await cache.get_fresh()
    assert len(queue.commands) == 2
