"""
Periodic frontmost-application poller.

Once per interval, asks System Events which process is frontmost (through the
CommandQueue, like every other script) and tells listeners when the switcher
bar should appear or hide. Polling is skipped entirely while a system dialog
is open.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .. import applescript
from ..constants import DEFAULT_POLL_INTERVAL
from ..errors import SwitcherError
from ..models import FrontmostChange
from .command_queue import CommandQueue, ExternalCommand
from .folder_picker import SystemDialogGuard

logger = logging.getLogger(__name__)

FrontmostListener = Callable[[FrontmostChange], Awaitable[None]]


class FrontmostPoller:
    """Tracks the frontmost application and derived bar visibility."""

    def __init__(
        self,
        queue: CommandQueue,
        guard: SystemDialogGuard,
        app_name: str = "Zed",
        companion_names: Optional[List[str]] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """Initialize the poller.

        Args:
            queue: CommandQueue shared with all other scripts
            guard: Dialog guard; polling pauses while it is active
            app_name: Editor process name
            companion_names: Other frontmost processes that keep the bar visible
            interval: Seconds between polls
        """
        self.queue = queue
        self.guard = guard
        self.interval = interval
        self._visible_for = {app_name.lower(), *(name.lower() for name in companion_names or [])}

        self.frontmost_app: Optional[str] = None
        self.bar_visible = False
        self.skipped_polls = 0

        self._listeners: List[FrontmostListener] = []
        self._task: Optional[asyncio.Task] = None

    def add_listener(self, listener: FrontmostListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="frontmost-poller")
        logger.info(f"Frontmost poller started (interval: {self.interval}s)")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Frontmost poller stopped")

    async def _run(self) -> None:
        # Each poll is awaited before sleeping, so polls never overlap
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Frontmost poll failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    async def poll_once(self) -> Optional[FrontmostChange]:
        """Run one poll.

        Returns:
            The change that was published, or None when skipped or unchanged
        """
        if self.guard.active:
            self.skipped_polls += 1
            logger.debug("Skipping frontmost poll, system dialog open")
            return None

        command = ExternalCommand.applescript(applescript.frontmost_process_name(), label="frontmost-app")
        try:
            output = await self.queue.submit(command)
        except SwitcherError as e:
            logger.debug(f"Frontmost query failed: {e.message}")
            return None

        # The dialog may have opened while this poll was queued
        if self.guard.active:
            return None

        app = output.strip().lower()
        if not app:
            return None

        visible = app in self._visible_for
        if app == self.frontmost_app and visible == self.bar_visible:
            return None

        change = FrontmostChange(app=app, previous=self.frontmost_app, bar_visible=visible)
        self.frontmost_app = app
        self.bar_visible = visible
        logger.debug(f"Frontmost app: {change.previous} -> {app} (bar visible: {visible})")

        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception as e:
                logger.error(f"Frontmost listener error: {e}", exc_info=True)

        return change
