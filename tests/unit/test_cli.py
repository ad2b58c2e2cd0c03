"""Unit tests for the zed-switcher CLI client."""

import argparse
from unittest.mock import AsyncMock, MagicMock

import pytest

from zed_switcher.cli import DaemonError, SwitcherCLI
from zed_switcher.config import SwitcherConfig
from zed_switcher.ipc_server import IPCServer


@pytest.fixture
def daemon():
    daemon = MagicMock()
    daemon.config = SwitcherConfig()
    daemon.activate_index = AsyncMock(return_value={"activated": True, "project": "myapp"})
    return daemon


@pytest.mark.asyncio
async def test_missing_socket_is_connection_error(tmp_path):
    cli = SwitcherCLI(tmp_path / "missing.sock")

    with pytest.raises(ConnectionError):
        await cli.send_request("ping")


@pytest.mark.asyncio
async def test_request_round_trip(daemon, tmp_path):
    server = IPCServer(daemon, tmp_path / "ipc.sock")
    await server.start()
    try:
        cli = SwitcherCLI(server.socket_path)

        assert (await cli.send_request("ping"))["status"] == "ok"
        assert await cli.send_request("activate_index", {"index": 3}) == {"activated": True, "project": "myapp"}

        with pytest.raises(DaemonError, match="between 1 and 9"):
            await cli.send_request("activate_index", {"index": 42})
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_open_sends_existing_directory_as_absolute_path(tmp_path, monkeypatch):
    (tmp_path / "myapp").mkdir()
    monkeypatch.chdir(tmp_path)
    cli = SwitcherCLI(tmp_path / "ipc.sock")
    cli.send_request = AsyncMock(return_value={"activated": True})

    args = argparse.Namespace(target="./myapp", open_if_missing=True)
    assert await cli.cmd_open(args) == 0
    cli.send_request.assert_awaited_once_with(
        "open_project", {"target": str((tmp_path / "myapp").resolve()), "open_if_missing": True}
    )

    cli.send_request.reset_mock()
    await cli.cmd_open(argparse.Namespace(target="otherapp", open_if_missing=False))
    cli.send_request.assert_awaited_once_with("open_project", {"target": "otherapp", "open_if_missing": False})


def test_no_command_prints_help(capsys):
    assert SwitcherCLI().run([]) == 1
    assert "usage: zed-switcher" in capsys.readouterr().out


def test_daemon_not_running_exit_code(tmp_path, capsys):
    cli = SwitcherCLI()

    assert cli.run(["--socket", str(tmp_path / "none.sock"), "ping"]) == 1
    assert "Daemon not running" in capsys.readouterr().err
