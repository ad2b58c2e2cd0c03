"""
Pydantic data models for zed-switcher.

WorkspaceEntry is persisted in projects.json using the camelCase keys the UI
layer already reads. LiveWindow is rebuilt on every window query and never
persisted.
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def workspace_name(path: str) -> str:
    """Final path component, ignoring a trailing slash."""
    return os.path.basename(path.rstrip("/"))


class WorkspaceEntry(BaseModel):
    """User-curated project shown as a tab in the switcher bar."""

    path: Optional[str] = Field(None, description="Absolute workspace directory")
    display_name: str = Field(..., alias="displayName", min_length=1)
    color: Optional[str] = Field(None, description="Tag color chosen in the UI")

    model_config = {"populate_by_name": True}

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings as unresolved."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def identity(self) -> str:
        """Path when known, display name otherwise."""
        return self.path or self.display_name

    def to_json(self) -> Dict[str, Any]:
        """Serialize for projects.json; color is omitted when unset."""
        data: Dict[str, Any] = {"path": self.path, "displayName": self.display_name}
        if self.color is not None:
            data["color"] = self.color
        return data


class LiveWindow(BaseModel):
    """One open Zed window, normalized and joined against the workspace cache.

    Attributes:
        raw_title: Title exactly as reported by System Events
        window_name: Name used to activate this window again. Untitled
            windows carry their disambiguation suffix, e.g. "empty project (2)"
        display_name: Project name with the open-file suffix removed
        path: Workspace directory from the cache, None when unresolved
        disambiguation_index: 1-based position among untitled windows in this
            query only. Not stable across queries.
    """

    raw_title: str
    window_name: str
    display_name: str
    path: Optional[str] = None
    disambiguation_index: Optional[int] = Field(None, ge=1)

    @property
    def is_untitled(self) -> bool:
        return self.disambiguation_index is not None

    def to_ipc(self) -> Dict[str, Any]:
        return {
            "windowName": self.window_name,
            "path": self.path,
            "displayName": self.display_name,
        }


class DialogState(BaseModel):
    """Remembered folder-picker location."""

    last_folder_path: Optional[str] = Field(None, alias="lastFolderPath")

    model_config = {"populate_by_name": True}


class FrontmostChange(BaseModel):
    """Emitted by the poller when the frontmost application or bar visibility changes."""

    app: str
    previous: Optional[str] = None
    bar_visible: bool
