"""Raise the Zed window for a project, or open the project in a new window."""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .. import applescript
from ..constants import ACTIVATED_MARKER, TITLE_SEPARATOR, UNTITLED_WINDOW_TITLE
from ..errors import SwitcherError
from ..models import LiveWindow, WorkspaceEntry
from .command_queue import CommandQueue, ExternalCommand
from .window_reconciler import untitled_name_pattern
from .workspace_cache import workspace_name

logger = logging.getLogger(__name__)

Target = Union[str, Path, WorkspaceEntry, LiveWindow]


class ActivationResolver:
    """Turns a project reference into a window-raise script.

    Every script goes through the CommandQueue, so a burst of shortcut
    presses is executed one raise at a time.
    """

    def __init__(
        self,
        queue: CommandQueue,
        app_name: str = "Zed",
        untitled_title: str = UNTITLED_WINDOW_TITLE,
        separator: str = TITLE_SEPARATOR,
    ):
        """Initialize the resolver.

        Args:
            queue: CommandQueue for osascript and open
            app_name: Editor process / application name
            untitled_title: Title Zed gives windows without a folder
            separator: Separator between project name and active file
        """
        self.queue = queue
        self.app_name = app_name
        self.untitled_title = untitled_title
        self.separator = separator
        self._untitled_pattern = untitled_name_pattern(untitled_title)

    def candidate_name(self, target: Target) -> str:
        """Window name to look for.

        Paths and entries with a path match on the final path component;
        everything else matches on its name as given.
        """
        if isinstance(target, LiveWindow):
            return target.window_name if target.is_untitled else target.display_name
        if isinstance(target, WorkspaceEntry):
            return workspace_name(target.path) if target.path else target.display_name

        target = str(target)
        if os.path.isabs(target):
            return workspace_name(target)
        return target

    def build_script(self, name: str) -> str:
        match = self._untitled_pattern.match(name)
        if match:
            return applescript.raise_untitled_window(self.app_name, self.untitled_title, int(match.group(1)))
        return applescript.raise_window_by_name(self.app_name, name, self.separator)

    async def activate(self, target: Target) -> bool:
        """Raise the window matching target.

        Returns:
            True if a window was raised. False when nothing matched or the
            script failed; neither is reported as an error.
        """
        name = self.candidate_name(target)
        if not name:
            return False

        command = ExternalCommand.applescript(self.build_script(name), label="raise-window")
        try:
            output = await self.queue.submit(command)
        except SwitcherError as e:
            logger.warning(f"Activating '{name}' failed: {e.message}")
            return False

        activated = output.strip() == ACTIVATED_MARKER
        if activated:
            logger.info(f"Activated window for '{name}'")
        else:
            logger.debug(f"No window matches '{name}'")
        return activated

    async def open_folder(self, folder_path: Union[str, Path]) -> Optional[str]:
        """Open folder_path in a new editor window.

        Returns:
            Display name of the folder, or None if `open` failed
        """
        folder = str(folder_path)
        command = ExternalCommand.open_with_app(self.app_name, folder, label="open-folder")
        try:
            await self.queue.submit(command)
        except SwitcherError as e:
            logger.warning(f"Opening {folder} in {self.app_name} failed: {e.message}")
            return None

        logger.info(f"Opened {folder} in {self.app_name}")
        return workspace_name(folder)

    async def open_project(self, target: Target) -> bool:
        """Raise the project's window, or open its folder when none is open.

        Returns:
            True when a window was raised or the folder was opened
        """
        if await self.activate(target):
            return True

        if isinstance(target, WorkspaceEntry):
            folder = target.path
        elif isinstance(target, LiveWindow):
            folder = target.path
        else:
            folder = str(target)

        if folder and os.path.isabs(folder) and os.path.isdir(folder):
            return await self.open_folder(folder) is not None

        return False
