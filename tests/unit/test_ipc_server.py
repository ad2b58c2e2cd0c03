"""
Unit tests for the IPC server.

Tests cover:
- Request routing and JSON-RPC error responses
- Parameter validation for shortcut and folder methods
- Newline-delimited round trip over a real Unix socket
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from zed_switcher.config import SwitcherConfig
from zed_switcher.errors import ErrorCode
from zed_switcher.ipc_server import IPCServer
from zed_switcher.models import LiveWindow, WorkspaceEntry


@pytest.fixture
def daemon():
    daemon = MagicMock()
    daemon.config = SwitcherConfig()
    daemon.project_store.load = AsyncMock(return_value=[
        WorkspaceEntry(path="/Users/x/myapp", display_name="myapp", color="red"),
    ])
    daemon.reconciler.list_windows = AsyncMock(return_value=[
        LiveWindow(raw_title="myapp — main.rs", window_name="myapp — main.rs",
                   display_name="myapp", path="/Users/x/myapp"),
    ])
    daemon.resolver.activate = AsyncMock(return_value=True)
    daemon.resolver.open_project = AsyncMock(return_value=True)
    daemon.resolver.open_folder = AsyncMock(return_value="foo")
    daemon.folder_picker.pick = AsyncMock(return_value=None)
    daemon.activate_index = AsyncMock(return_value={"activated": True, "project": "myapp"})
    daemon.get_status.return_value = {"running": True}
    return daemon


@pytest.fixture
def server(daemon, tmp_path):
    return IPCServer(daemon, tmp_path / "ipc.sock")


async def call(server, method, params=None, request_id=1):
    return await server._handle_request({"jsonrpc": "2.0", "method": method, "params": params or {}, "id": request_id})


@pytest.mark.asyncio
async def test_ping(server):
    response = await call(server, "ping", request_id=7)
    assert response == {"jsonrpc": "2.0", "result": {"status": "ok", "daemon": "zed-switcher"}, "id": 7}


@pytest.mark.asyncio
async def test_get_projects_and_windows(server):
    projects = await call(server, "get_projects")
    assert projects["result"] == [{"path": "/Users/x/myapp", "displayName": "myapp", "color": "red"}]

    windows = await call(server, "get_windows")
    assert windows["result"] == [{"windowName": "myapp — main.rs", "path": "/Users/x/myapp", "displayName": "myapp"}]


@pytest.mark.asyncio
async def test_save_projects_validates_entries(server, daemon):
    ok = await call(server, "save_projects", {"projects": [{"path": "/Users/x/a", "displayName": "a"}]})
    assert ok["result"] is True
    saved = daemon.project_store.save.call_args.args[0]
    assert saved == [WorkspaceEntry(path="/Users/x/a", display_name="a")]

    bad = await call(server, "save_projects", {"projects": [{"path": "/Users/x/a"}]})
    assert bad["error"]["code"] == ErrorCode.INVALID_PARAMS.value


@pytest.mark.asyncio
async def test_save_projects_drops_duplicates(server, daemon):
    await call(server, "save_projects", {"projects": [
        {"path": "/Users/x/a", "displayName": "a", "color": "red"},
        {"path": None, "displayName": "scratch"},
        {"path": "/Users/x/a", "displayName": "A again"},
        {"path": None, "displayName": "scratch"},
    ]})

    saved = daemon.project_store.save.call_args.args[0]
    assert [(e.path, e.display_name, e.color) for e in saved] == [
        ("/Users/x/a", "a", "red"),
        (None, "scratch", None),
    ]


@pytest.mark.asyncio
async def test_open_project_uses_fallback_only_when_asked(server, daemon):
    await call(server, "open_project", {"target": "/Users/x/bar"})
    daemon.resolver.activate.assert_awaited_once_with("/Users/x/bar")
    daemon.resolver.open_project.assert_not_awaited()

    await call(server, "open_project", {"target": "/Users/x/bar", "open_if_missing": True})
    daemon.resolver.open_project.assert_awaited_once_with("/Users/x/bar")


@pytest.mark.asyncio
@pytest.mark.parametrize("index", [0, 10, -1, "1", True, 1.5])
async def test_activate_index_rejects_out_of_range(server, daemon, index):
    response = await call(server, "activate_index", {"index": index})

    assert response["error"]["code"] == ErrorCode.INVALID_PARAMS.value
    daemon.activate_index.assert_not_awaited()


@pytest.mark.asyncio
async def test_activate_index(server, daemon):
    response = await call(server, "activate_index", {"index": 9})

    assert response["result"] == {"activated": True, "project": "myapp"}
    daemon.activate_index.assert_awaited_once_with(9)


@pytest.mark.asyncio
async def test_open_folder_requires_absolute_path(server, daemon):
    response = await call(server, "open_folder", {"path": "relative/dir"})
    assert response["error"]["code"] == ErrorCode.INVALID_PARAMS.value

    response = await call(server, "open_folder", {"path": "/Users/x/foo"})
    assert response["result"] == {"opened": True, "displayName": "foo"}


@pytest.mark.asyncio
async def test_select_folder_cancelled(server):
    response = await call(server, "select_folder")
    assert response["result"] == {"path": None}


@pytest.mark.asyncio
async def test_unknown_method_and_params(server):
    response = await call(server, "reload_everything")
    assert response["error"]["code"] == ErrorCode.METHOD_NOT_FOUND.value
    assert "get_windows" in response["error"]["context"]["available_methods"]

    response = await call(server, "ping", {"verbose": True})
    assert response["error"]["code"] == ErrorCode.INVALID_PARAMS.value


@pytest.mark.asyncio
async def test_malformed_requests(server):
    response = await server._handle_request(["not", "an", "object"])
    assert response["error"]["code"] == ErrorCode.INVALID_REQUEST.value

    response = await server._handle_request({"id": 3})
    assert response["error"]["code"] == ErrorCode.INVALID_REQUEST.value
    assert response["id"] == 3


@pytest.mark.asyncio
async def test_unexpected_handler_error_is_internal_error(server, daemon):
    daemon.reconciler.list_windows.side_effect = RuntimeError("boom")

    response = await call(server, "get_windows")

    assert response["error"]["code"] == ErrorCode.INTERNAL_ERROR.value
    assert response["error"]["message"] == "boom"


@pytest.mark.asyncio
async def test_socket_round_trip(server):
    await server.start()
    try:
        reader, writer = await asyncio.open_unix_connection(str(server.socket_path))
        writer.write(b'{"jsonrpc": "2.0", "method": "ping", "id": 1}\n')
        writer.write(b"{broken\n")
        await writer.drain()

        first = json.loads(await reader.readline())
        second = json.loads(await reader.readline())

        assert first["result"]["status"] == "ok"
        assert second["error"]["code"] == ErrorCode.PARSE_ERROR.value

        writer.close()
        await writer.wait_closed()
    finally:
        await server.stop()

    assert not server.socket_path.exists()
