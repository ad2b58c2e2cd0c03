"""
Reconcile open Zed windows against the workspace cache.

Zed titles a window "<project> — <active file>", or just "<project>", or
"empty project" when no folder is open. Untitled windows are numbered by the
order System Events lists them in this one query. That order is not stable
between queries, so "empty project (2)" may name a different window next
time; the activation script counts the same way, which keeps the two
consistent within a short interval.
"""

import logging
import re
from typing import Dict, List, Pattern

from .. import applescript
from ..constants import TITLE_SEPARATOR, UNTITLED_WINDOW_TITLE, WINDOW_LIST_DELIMITER
from ..errors import NotRunningError, SwitcherError
from ..models import LiveWindow
from .command_queue import CommandQueue, ExternalCommand
from .workspace_cache import WorkspacePathCache

logger = logging.getLogger(__name__)


def untitled_window_name(untitled_title: str, index: int) -> str:
    return f"{untitled_title} ({index})"


def untitled_name_pattern(untitled_title: str) -> Pattern[str]:
    """Matches names produced by untitled_window_name()."""
    return re.compile(rf"^{re.escape(untitled_title)} \((\d+)\)$")


def project_name_from_title(title: str, separator: str = TITLE_SEPARATOR) -> str:
    """Everything before the first separator, or the whole title."""
    return title.split(separator, 1)[0]


def split_titles(raw: str, delimiter: str = WINDOW_LIST_DELIMITER) -> List[str]:
    return [title for title in raw.strip().split(delimiter) if title]


def reconcile_titles(
    titles: List[str],
    mapping: Dict[str, str],
    untitled_title: str = UNTITLED_WINDOW_TITLE,
    separator: str = TITLE_SEPARATOR,
) -> List[LiveWindow]:
    """Turn raw window titles into LiveWindows, in the order given.

    Untitled windows get a 1-based index counted within this call. Named
    windows resolve their path through `mapping`; a second window of an
    already-listed project is folded into the first.
    """
    windows: List[LiveWindow] = []
    seen_projects = set()
    untitled_count = 0

    for title in titles:
        if title == untitled_title:
            untitled_count += 1
            name = untitled_window_name(untitled_title, untitled_count)
            windows.append(LiveWindow(
                raw_title=title,
                window_name=name,
                display_name=name,
                path=None,
                disambiguation_index=untitled_count,
            ))
            continue

        project = project_name_from_title(title, separator)
        if project in seen_projects:
            logger.debug(f"Folding extra window '{title}' into project '{project}'")
            continue
        seen_projects.add(project)

        windows.append(LiveWindow(
            raw_title=title,
            window_name=title,
            display_name=project,
            path=mapping.get(project),
        ))

    return windows


class WindowReconciler:
    """Lists Zed windows as LiveWindows.

    Never waits on the workspace database: paths come from whatever the
    cache currently holds, and a stale cache refreshes in the background.
    """

    def __init__(
        self,
        queue: CommandQueue,
        cache: WorkspacePathCache,
        app_name: str = "Zed",
        untitled_title: str = UNTITLED_WINDOW_TITLE,
        separator: str = TITLE_SEPARATOR,
    ):
        self.queue = queue
        self.cache = cache
        self.app_name = app_name
        self.untitled_title = untitled_title
        self.separator = separator

    async def fetch_titles(self) -> List[str]:
        """Ask System Events for every window title.

        Raises:
            NotRunningError: Zed is not running (empty script output)
            CommandTimeoutError, ExternalFailureError: from the queue
        """
        command = ExternalCommand.applescript(
            applescript.list_window_titles(self.app_name), label="list-windows"
        )
        output = await self.queue.submit(command)
        if not output.strip():
            raise NotRunningError(self.app_name)
        return split_titles(output)

    async def list_windows(self) -> List[LiveWindow]:
        """Current windows; empty when Zed is closed or the query fails."""
        try:
            titles = await self.fetch_titles()
        except NotRunningError:
            logger.debug(f"{self.app_name} not running, no windows")
            return []
        except SwitcherError as e:
            logger.warning(f"Window listing failed: {e.message}")
            return []

        mapping = self.cache.get_cached()
        windows = reconcile_titles(titles, mapping, self.untitled_title, self.separator)
        logger.debug(f"Listed {len(windows)} windows from {len(titles)} titles")
        return windows

