"""
Services for the zed-switcher daemon.

Modules:
- command_queue: Serialized, time-bounded external command execution
- workspace_cache: TTL cache of Zed workspace name -> path
- window_reconciler: Open Zed windows joined against the workspace cache
- activation_resolver: Raise a project's window or open it
- frontmost_poller: Frontmost application tracking for bar visibility
- folder_picker: Folder dialog and the polling suppression guard
"""

from .command_queue import CommandQueue, ExternalCommand
from .workspace_cache import WorkspacePathCache, parse_workspace_paths
from .window_reconciler import WindowReconciler, reconcile_titles
from .activation_resolver import ActivationResolver
from .folder_picker import FolderPicker, SystemDialogGuard
from .frontmost_poller import FrontmostPoller

__all__ = [
    "CommandQueue",
    "ExternalCommand",
    "WorkspacePathCache",
    "parse_workspace_paths",
    "WindowReconciler",
    "reconcile_titles",
    "ActivationResolver",
    "FolderPicker",
    "SystemDialogGuard",
    "FrontmostPoller",
]
