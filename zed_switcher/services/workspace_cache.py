"""
Workspace path cache backed by Zed's workspace history database.

Maps a workspace's display name (final path component) to its directory.
The mapping is read with sqlite3 through the CommandQueue and kept for a TTL
(60s by default). Refreshes are single-flight: while one is in progress every
caller attaches to the same task instead of issuing another query.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..constants import DEFAULT_CACHE_TTL, WORKSPACE_PATHS_SQL
from ..errors import ParseFailureError, SwitcherError
from ..models import workspace_name
from .command_queue import CommandQueue, ExternalCommand

logger = logging.getLogger(__name__)


def parse_workspace_paths(raw: str) -> Dict[str, str]:
    """Parse newline-delimited workspace paths into a name -> path mapping.

    Input is ordered most recently used first, so the first path claiming a
    name wins and later paths with the same final component are dropped.

    Args:
        raw: sqlite3 stdout

    Returns:
        Mapping of display name to absolute path

    Raises:
        ParseFailureError: Output is non-empty but contains no absolute path
    """
    mapping: Dict[str, str] = {}
    lines = [line.strip() for line in raw.splitlines() if line.strip()]

    for line in lines:
        if not line.startswith("/"):
            logger.debug(f"Skipping non-path workspace row: {line!r}")
            continue

        path = line.rstrip("/") or "/"
        name = workspace_name(path)
        if not name:
            continue

        if name in mapping:
            logger.debug(f"Workspace name '{name}' already owned by {mapping[name]}, dropping {path}")
            continue

        mapping[name] = path

    if lines and not mapping:
        raise ParseFailureError("workspace database output", f"no absolute paths in {len(lines)} rows")

    return mapping


class WorkspacePathCache:
    """TTL cache of Zed workspace name -> path.

    `mapping` only ever holds the result of the most recent successful read.
    A failed read keeps the previous mapping and leaves `last_updated`
    untouched, so the next staleness check retries.

    Example:
        >>> cache = WorkspacePathCache(queue, ConfigPaths.ZED_DB_FILE)
        >>> cache.get_cached()          # immediate, may trigger a refresh
        {}
        >>> await cache.get_fresh()     # waits for the refresh when stale
        {'nixos-config': '/Users/me/nixos-config'}
    """

    def __init__(
        self,
        queue: CommandQueue,
        db_path: Union[str, Path],
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the workspace cache.

        Args:
            queue: CommandQueue used to run sqlite3
            db_path: Zed's db.sqlite
            ttl: Time-to-live in seconds
            clock: Monotonic time source, injectable for tests
        """
        self.queue = queue
        self.db_path = Path(db_path)
        self.ttl = ttl
        self._clock = clock

        self._mapping: Dict[str, str] = {}
        self._last_updated: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None

        self._queries = 0
        self._refreshes = 0
        self._stale_served = 0

    @property
    def last_updated(self) -> Optional[float]:
        return self._last_updated

    @property
    def is_stale(self) -> bool:
        """True when never loaded or older than the TTL."""
        if self._last_updated is None:
            return True
        return self._clock() - self._last_updated > self.ttl

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    def get_cached(self) -> Dict[str, str]:
        """Return the current mapping without waiting.

        When stale, a background refresh is started (or the running one is
        reused) but not awaited.
        """
        if self.is_stale:
            self.refresh()
        return dict(self._mapping)

    async def get_fresh(self) -> Dict[str, str]:
        """Return the mapping, waiting for a refresh first if stale."""
        if self.is_stale:
            return dict(await asyncio.shield(self.refresh()))
        return dict(self._mapping)

    def refresh(self) -> asyncio.Task:
        """Start a refresh, or return the one already in flight.

        Returns:
            Task resolving to the mapping after the refresh; never raises
        """
        if self._refresh_task is not None:
            return self._refresh_task

        task = asyncio.create_task(self._do_refresh(), name="workspace-cache-refresh")
        self._refresh_task = task
        task.add_done_callback(self._on_refresh_done)
        return task

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _do_refresh(self) -> Dict[str, str]:
        self._queries += 1
        command = ExternalCommand.sqlite_query(self.db_path, WORKSPACE_PATHS_SQL, label="workspace-db")

        try:
            output = await self.queue.submit(command)
            mapping = parse_workspace_paths(output)
        except SwitcherError as e:
            self._stale_served += 1
            logger.warning(
                f"Failed to read Zed workspace database, keeping {len(self._mapping)} cached entries: {e.message}"
            )
            return self._mapping

        self._mapping = mapping
        self._last_updated = self._clock()
        self._refreshes += 1
        logger.debug(f"Workspace cache refreshed: {len(mapping)} workspaces")
        return mapping

    def invalidate(self) -> None:
        """Mark the mapping stale; it is still served until the next refresh."""
        self._last_updated = None

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        age = None
        if self._last_updated is not None:
            age = round(self._clock() - self._last_updated, 2)
        return {
            "entries": len(self._mapping),
            "age_s": age,
            "ttl_s": self.ttl,
            "is_stale": self.is_stale,
            "refreshing": self.is_refreshing,
            "queries": self._queries,
            "refreshes": self._refreshes,
            "stale_served": self._stale_served,
        }
