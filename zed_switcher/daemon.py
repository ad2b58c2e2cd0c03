"""
zed-switcher daemon

Owns the command queue, workspace cache and the services built on them, and
exposes them to the switcher bar UI and the hotkey daemon over IPC.
"""
# Module can be run with: python -m zed_switcher

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SwitcherConfig, load_config
from .ipc_server import IPCServer
from .logging_config import setup_logging
from .models import FrontmostChange
from .project_store import DialogStateStore, ProjectStore
from .services import (
    ActivationResolver,
    CommandQueue,
    FolderPicker,
    FrontmostPoller,
    SystemDialogGuard,
    WindowReconciler,
    WorkspacePathCache,
)

logger = logging.getLogger(__name__)


class SwitcherDaemon:
    """Main daemon for the Zed window switcher."""

    def __init__(self, config: Optional[SwitcherConfig] = None):
        """
        Initialize the daemon and its components.

        Args:
            config: Daemon settings (defaults to SwitcherConfig())
        """
        self.config = config or SwitcherConfig()
        self.running = False
        self._shutdown = asyncio.Event()

        self.queue = CommandQueue(timeout=self.config.command_timeout)
        self.cache = WorkspacePathCache(self.queue, self.config.zed_db_path, ttl=self.config.cache_ttl)
        self.reconciler = WindowReconciler(self.queue, self.cache, app_name=self.config.app_name)
        self.resolver = ActivationResolver(self.queue, app_name=self.config.app_name)

        self.project_store = ProjectStore(self.config.projects_file, self.cache)
        self.dialog_guard = SystemDialogGuard()
        self.folder_picker = FolderPicker(self.dialog_guard, DialogStateStore(self.config.dialog_state_file))

        self.poller = FrontmostPoller(
            self.queue,
            self.dialog_guard,
            app_name=self.config.app_name,
            companion_names=self.config.companion_process_names,
            interval=self.config.poll_interval,
        )
        self.poller.add_listener(self._on_frontmost_change)

        self.ipc_server = IPCServer(self, self.config.socket_path)

    async def start(self):
        """Start all components."""
        logger.info("Starting zed-switcher daemon")

        self.folder_picker.load_state()
        self.queue.start()
        self.poller.start()
        await self.ipc_server.start()

        # Warm the cache so the first window listing can resolve paths
        self.cache.refresh()

        self.running = True
        logger.info("Daemon started successfully")

    async def stop(self):
        """Stop components in reverse order."""
        if self._shutdown.is_set():
            return

        logger.info("Stopping daemon...")
        self.running = False

        await self.ipc_server.stop()
        await self.poller.stop()
        await self.queue.stop()

        self._shutdown.set()
        logger.info("Daemon stopped")

    async def wait_closed(self):
        await self._shutdown.wait()

    async def activate_index(self, index: int) -> Dict[str, Any]:
        """Activate the index-th (1-based) saved project.

        Returns:
            {"activated": bool, "project": displayName or None}
        """
        projects = await self.project_store.load()
        if index > len(projects):
            logger.debug(f"No project in slot {index}")
            return {"activated": False, "project": None}

        entry = projects[index - 1]
        activated = await self.resolver.activate(entry)
        return {"activated": activated, "project": entry.display_name}

    async def _on_frontmost_change(self, change: FrontmostChange):
        logger.info(f"Frontmost app: {change.app} (bar {'shown' if change.bar_visible else 'hidden'})")

        # Editor just came to the front; refresh paths in the background if stale
        if change.app == self.config.app_name.lower() and change.previous != change.app:
            self.cache.get_cached()

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "frontmost_app": self.poller.frontmost_app,
            "bar_visible": self.poller.bar_visible,
            "dialog_open": self.dialog_guard.active,
            "queue": self.queue.get_stats(),
            "workspace_cache": self.cache.get_stats(),
        }


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="zed-switcher-daemon",
        description="Floating window switcher daemon for Zed"
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)

    daemon = SwitcherDaemon(load_config(args.config))

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await daemon.start()
        await daemon.wait_closed()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await daemon.stop()
        sys.exit(1)


def run():
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
