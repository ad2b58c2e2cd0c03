#!/usr/bin/env python3
"""
zed-switcher CLI

Command-line client for the zed-switcher daemon. Hotkey daemons (skhd,
Hammerspoon) bind `zed-switcher activate N` to Cmd+Alt+N.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import ConfigPaths


class DaemonError(RuntimeError):
    """The daemon answered with a JSON-RPC error."""


class SwitcherCLI:
    """CLI client for the zed-switcher daemon."""

    def __init__(self, socket_path: Optional[Path] = None):
        self.socket_path = socket_path or ConfigPaths.SOCKET_PATH

    async def send_request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send JSON-RPC request to daemon.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            The response's result

        Raises:
            ConnectionError: If cannot connect to daemon
            DaemonError: If the daemon returned an error
        """
        if not self.socket_path.exists():
            raise ConnectionError(f"Daemon not running (socket not found: {self.socket_path})")

        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": 1
        }

        try:
            reader, writer = await asyncio.open_unix_connection(str(self.socket_path))
        except OSError as e:
            raise ConnectionError(f"Cannot connect to daemon: {e}") from e

        try:
            writer.write((json.dumps(request) + "\n").encode())
            await writer.drain()
            data = await reader.readline()
        finally:
            writer.close()
            await writer.wait_closed()

        if not data:
            raise ConnectionError("Daemon closed the connection")

        response = json.loads(data.decode())
        if "error" in response:
            error = response["error"]
            message = error.get("message", "unknown error")
            if error.get("suggestion"):
                message += f" ({error['suggestion']})"
            raise DaemonError(message)

        return response.get("result")

    @staticmethod
    def _print_json(value: Any) -> None:
        print(json.dumps(value, indent=2, ensure_ascii=False))

    async def cmd_ping(self, args):
        """Ping daemon to check if running."""
        result = await self.send_request("ping")
        if result.get("status") == "ok":
            print("✅ Daemon is running")
            return 0
        print("⚠️  Daemon responded but status is not OK")
        return 1

    async def cmd_status(self, args):
        status = await self.send_request("get_status")
        if args.json:
            self._print_json(status)
            return 0

        queue = status["queue"]
        cache = status["workspace_cache"]
        print(f"Frontmost app:   {status['frontmost_app'] or '-'}")
        print(f"Bar visible:     {'yes' if status['bar_visible'] else 'no'}")
        print(f"Dialog open:     {'yes' if status['dialog_open'] else 'no'}")
        print(f"Command queue:   {queue['pending']} pending, running: {queue['running'] or '-'}")
        print(f"                 {queue['completed']} ok / {queue['failed']} failed / {queue['timed_out']} timed out")
        print(f"Workspace cache: {cache['entries']} entries, age {cache['age_s'] if cache['age_s'] is not None else '-'}s"
              f"{' (stale)' if cache['is_stale'] else ''}")
        return 0

    async def cmd_projects(self, args):
        projects: List[Dict[str, Any]] = await self.send_request("get_projects")
        if args.json:
            self._print_json(projects)
            return 0

        if not projects:
            print("No projects saved")
            return 0

        for index, project in enumerate(projects, start=1):
            print(f"{index:>2}. {project['displayName']:<30} {project.get('path') or '(unresolved)'}")
        return 0

    async def cmd_windows(self, args):
        windows: List[Dict[str, Any]] = await self.send_request("get_windows")
        if args.json:
            self._print_json(windows)
            return 0

        if not windows:
            print("No Zed windows open")
            return 0

        for window in windows:
            print(f"{window['displayName']:<30} {window.get('path') or '-'}")
        return 0

    async def cmd_open(self, args):
        target = args.target
        # Existing directories are sent as absolute paths; anything else is a project name
        candidate = Path(target).expanduser()
        if candidate.is_dir():
            target = str(candidate.resolve())

        result = await self.send_request(
            "open_project", {"target": target, "open_if_missing": args.open_if_missing}
        )
        return 0 if result.get("activated") else 1

    async def cmd_activate(self, args):
        result = await self.send_request("activate_index", {"index": args.index})
        return 0 if result.get("activated") else 1

    async def cmd_open_folder(self, args):
        folder = str(Path(args.path).expanduser().resolve())
        result = await self.send_request("open_folder", {"path": folder})
        if result.get("opened"):
            print(f"Opened {result['displayName']}")
            return 0
        print(f"❌ Failed to open {folder}")
        return 1

    async def cmd_pick_folder(self, args):
        result = await self.send_request("select_folder")
        if result.get("path"):
            print(result["path"])
            return 0
        return 1

    def run(self, argv=None):
        """Run CLI."""
        parser = argparse.ArgumentParser(
            description="Zed window switcher CLI",
            prog="zed-switcher"
        )
        parser.add_argument("--socket", type=Path, default=None, help="Daemon socket path")

        subparsers = parser.add_subparsers(dest="command", help="Command to execute")

        subparsers.add_parser("ping", help="Check if daemon is running")

        status_parser = subparsers.add_parser("status", help="Show daemon status")
        status_parser.add_argument("--json", action="store_true", help="Output as JSON")

        projects_parser = subparsers.add_parser("projects", help="List saved projects")
        projects_parser.add_argument("--json", action="store_true", help="Output as JSON")

        windows_parser = subparsers.add_parser("windows", help="List open Zed windows")
        windows_parser.add_argument("--json", action="store_true", help="Output as JSON")

        open_parser = subparsers.add_parser("open", help="Raise a project's window by path or name")
        open_parser.add_argument("target", help="Project path or name")
        open_parser.add_argument("--open-if-missing", action="store_true",
                                 help="Open the folder in a new window when none is open")

        activate_parser = subparsers.add_parser("activate", help="Raise the Nth saved project")
        activate_parser.add_argument("index", type=int, help="1-based project slot")

        open_folder_parser = subparsers.add_parser("open-folder", help="Open a folder in a new Zed window")
        open_folder_parser.add_argument("path", help="Folder to open")

        subparsers.add_parser("pick-folder", help="Show the folder picker and print the choice")

        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        if args.socket:
            self.socket_path = args.socket

        cmd_map = {
            "ping": self.cmd_ping,
            "status": self.cmd_status,
            "projects": self.cmd_projects,
            "windows": self.cmd_windows,
            "open": self.cmd_open,
            "activate": self.cmd_activate,
            "open-folder": self.cmd_open_folder,
            "pick-folder": self.cmd_pick_folder,
        }

        handler = cmd_map[args.command]

        try:
            return asyncio.run(handler(args))
        except KeyboardInterrupt:
            print("\nInterrupted")
            return 130
        except ConnectionError as e:
            print(f"❌ Daemon not running: {e}", file=sys.stderr)
            return 1
        except DaemonError as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1


def main():
    """Main entry point."""
    cli = SwitcherCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
