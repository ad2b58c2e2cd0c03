"""
Folder picker dialog and the guard that pauses frontmost polling around it.

While the modal dialog is up, "which application is frontmost" is
meaningless and the poller's System Events calls fight the dialog for
focus. SystemDialogGuard is the one flag shared between the picker and the
poller; opened() guarantees it is cleared on every exit path.
"""

import asyncio
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from .. import applescript
from ..constants import ConfigPaths, SLOW_PATH_FRAGMENTS, SLOW_PATH_PREFIXES
from ..logging_config import log_timing
from ..models import DialogState
from ..project_store import DialogStateStore

logger = logging.getLogger(__name__)

# AppleScript "User canceled." error number
USER_CANCELED = "-128"


class SystemDialogGuard:
    """Suppression flag for the frontmost poller.

    Counts open dialogs, so overlapping dialogs keep polling paused until
    the last one closes.
    """

    def __init__(self):
        self._open_dialogs = 0

    @property
    def active(self) -> bool:
        return self._open_dialogs > 0

    @contextmanager
    def opened(self):
        """Mark a system dialog as open for the duration of the block."""
        self._open_dialogs += 1
        logger.debug(f"System dialog opened ({self._open_dialogs} open), frontmost polling paused")
        try:
            yield
        finally:
            self._open_dialogs -= 1
            if not self._open_dialogs:
                logger.debug("System dialogs closed, frontmost polling resumed")


def is_slow_dialog_path(folder_path: Optional[str]) -> bool:
    """True for locations where the first directory listing can stall.

    Checked before touching the filesystem, since even an exists() on a
    network or cloud volume can block.
    """
    if not folder_path:
        return True

    normalized = os.path.normpath(folder_path)
    if any(fragment in normalized for fragment in SLOW_PATH_FRAGMENTS):
        return True
    return normalized.startswith(SLOW_PATH_PREFIXES)


def resolve_default_path(
    last_folder_path: Optional[str],
    downloads_dir: Path = ConfigPaths.DOWNLOADS_DIR,
    home_dir: Path = ConfigPaths.HOME,
) -> str:
    """Pick where the dialog opens: last folder, else Downloads, else home."""
    if last_folder_path and not is_slow_dialog_path(last_folder_path) and os.path.isdir(last_folder_path):
        return last_folder_path

    if downloads_dir.is_dir():
        return str(downloads_dir)

    return str(home_dir)


class FolderPicker:
    """Runs the choose-folder dialog as its own osascript process.

    The dialog is user-paced and can stay open for minutes, so it does not go
    through the CommandQueue and has no timeout.
    """

    def __init__(
        self,
        guard: SystemDialogGuard,
        state_store: DialogStateStore,
        spawn: Optional[Callable[..., Awaitable[Any]]] = None,
    ):
        self.guard = guard
        self.state_store = state_store
        self._spawn = spawn or asyncio.create_subprocess_exec
        self.state = DialogState()

    def load_state(self) -> None:
        self.state = self.state_store.load()

    async def pick(self) -> Optional[str]:
        """Show the dialog.

        Returns:
            Chosen folder without trailing slash, or None if cancelled or failed
        """
        default_path = resolve_default_path(self.state.last_folder_path)
        logger.debug(f"Folder dialog default location: {default_path}")

        with self.guard.opened(), log_timing("folder dialog", logger):
            selected = await self._run_dialog(default_path)

        if selected is None:
            return None

        self.state = DialogState(last_folder_path=selected)
        try:
            self.state_store.save(self.state)
        except OSError as e:
            logger.error(f"Failed to save dialog state: {e}")

        return selected

    async def _run_dialog(self, default_path: str) -> Optional[str]:
        script = applescript.choose_folder(default_path)

        try:
            proc = await self._spawn(
                "osascript", "-e", script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Could not start folder dialog: {e}")
            return None

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            stderr_text = (stderr or b"").decode("utf-8", errors="replace").strip()
            if USER_CANCELED in stderr_text:
                logger.info("Folder dialog cancelled")
            else:
                logger.error(f"Folder dialog failed (exit {proc.returncode}): {stderr_text}")
            return None

        selected = (stdout or b"").decode("utf-8", errors="replace").strip()
        if not selected:
            return None
        return selected.rstrip("/") or "/"
