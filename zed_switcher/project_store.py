"""Persistence for the project list and folder-dialog state.

projects.json is a JSON array of {"path", "displayName", "color"}. Files
written by older versions hold {"name"} elements instead; those are upgraded
on load by looking the name up in the workspace cache, and the file is
rewritten once in the new format.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from pydantic import ValidationError

from .errors import ErrorCode, SwitcherError
from .models import DialogState, WorkspaceEntry, workspace_name

if TYPE_CHECKING:
    from .services.workspace_cache import WorkspacePathCache

logger = logging.getLogger(__name__)


def atomic_write_json(data: Any, target: Path) -> None:
    """Write JSON to target via temp file + rename.

    Raises:
        OSError: If the file cannot be written
    """
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.stem}-", suffix=".json")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, target)
    except Exception:
        if Path(temp_path).exists():
            os.unlink(temp_path)
        raise


def is_legacy_entry(raw: Dict[str, Any]) -> bool:
    """Old format: a bare name with neither path nor displayName."""
    return bool(raw.get("name")) and not raw.get("path") and not raw.get("displayName")


class ProjectStore:
    """Loads and saves the user's project list."""

    def __init__(self, projects_file: Path, cache: "WorkspacePathCache"):
        """Initialize the store.

        Args:
            projects_file: Path to projects.json
            cache: Workspace cache used to resolve legacy names to paths
        """
        self.projects_file = projects_file
        self.cache = cache

    async def load(self) -> List[WorkspaceEntry]:
        """Load projects, upgrading legacy elements.

        Returns:
            Projects in saved order; empty if the file is missing or unreadable
        """
        if not self.projects_file.exists():
            return []

        try:
            with open(self.projects_file, encoding="utf-8") as f:
                raw_entries = json.load(f)
            if not isinstance(raw_entries, list):
                raise ValueError(f"expected a JSON array, got {type(raw_entries).__name__}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load projects from {self.projects_file}: {e}")
            return []

        workspaces: Dict[str, str] = {}
        if any(isinstance(raw, dict) and is_legacy_entry(raw) for raw in raw_entries):
            workspaces = await self.cache.get_fresh()

        entries, migrated, skipped = self._normalize(raw_entries, workspaces)

        if migrated and skipped:
            # Rewriting would erase the skipped elements
            logger.warning(
                f"Not persisting migration of {migrated} project(s): "
                f"{skipped} unreadable element(s) left in {self.projects_file}"
            )
        elif migrated:
            try:
                self.save(entries)
                logger.info(f"Migrated {migrated} project(s) to the path-based format")
            except SwitcherError as e:
                logger.error(f"Project migration not persisted: {e.message}")

        return entries

    @staticmethod
    def _normalize(
        raw_entries: List[Any], workspaces: Dict[str, str]
    ) -> Tuple[List[WorkspaceEntry], int, int]:
        """Returns (entries, migrated count, skipped count)."""
        entries: List[WorkspaceEntry] = []
        migrated = 0
        skipped = 0

        for raw in raw_entries:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed project entry: {raw!r}")
                skipped += 1
                continue

            if is_legacy_entry(raw):
                migrated += 1
                data = {
                    "path": workspaces.get(raw["name"]),
                    "displayName": raw["name"],
                    "color": raw.get("color"),
                }
            else:
                path = raw.get("path") or None
                display_name = raw.get("displayName") or raw.get("name")
                if not display_name and isinstance(path, str):
                    display_name = workspace_name(path)
                data = {
                    "path": path,
                    "displayName": display_name,
                    "color": raw.get("color"),
                }

            try:
                entries.append(WorkspaceEntry(**data))
            except ValidationError as e:
                logger.warning(f"Skipping invalid project entry {raw!r}: {e.errors()[0]['msg']}")
                skipped += 1

        return entries, migrated, skipped

    def save(self, entries: List[WorkspaceEntry]) -> None:
        """Persist projects atomically.

        Raises:
            SwitcherError: FILE_WRITE_ERROR if the file cannot be written
        """
        try:
            atomic_write_json([entry.to_json() for entry in entries], self.projects_file)
        except OSError as e:
            logger.error(f"Failed to save projects: {e}")
            raise SwitcherError(
                code=ErrorCode.FILE_WRITE_ERROR,
                message=f"Failed to save projects to {self.projects_file}: {e}",
                suggestion="Check permissions of the application support directory",
                context={"file_path": str(self.projects_file)}
            ) from e

        logger.debug(f"Saved {len(entries)} project(s)")


class DialogStateStore:
    """Remembers the last folder chosen in the folder dialog."""

    def __init__(self, state_file: Path):
        self.state_file = state_file

    def load(self) -> DialogState:
        if not self.state_file.exists():
            return DialogState()

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
            return DialogState(last_folder_path=data.get("lastFolderPath") or None)
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load dialog state: {e}")
            return DialogState()

    def save(self, state: DialogState) -> None:
        """Raises OSError if the file cannot be written."""
        atomic_write_json(state.model_dump(by_alias=True), self.state_file)
