"""Centralized configuration paths and constants for zed-switcher.

Single source of truth for file paths and for the strings that make up the
contract with Zed's window titles and workspace database.
"""

from pathlib import Path
from typing import Final


class ConfigPaths:
    """Centralized configuration paths.

    All paths are computed once at import time based on user's home directory.

    Example:
        from .constants import ConfigPaths

        projects = json.loads(ConfigPaths.PROJECTS_FILE.read_text())
    """

    # Base directories
    HOME: Final[Path] = Path.home()
    APP_SUPPORT_DIR: Final[Path] = HOME / "Library" / "Application Support" / "zed-switcher"
    CACHE_DIR: Final[Path] = HOME / ".cache" / "zed-switcher"
    DOWNLOADS_DIR: Final[Path] = HOME / "Downloads"

    # User data
    PROJECTS_FILE: Final[Path] = APP_SUPPORT_DIR / "projects.json"
    DIALOG_STATE_FILE: Final[Path] = APP_SUPPORT_DIR / "dialog_state.json"
    CONFIG_FILE: Final[Path] = APP_SUPPORT_DIR / "config.json"

    # Zed's own workspace history database
    ZED_DB_FILE: Final[Path] = (
        HOME / "Library" / "Application Support" / "Zed" / "db" / "0-stable" / "db.sqlite"
    )

    # IPC socket
    SOCKET_PATH: Final[Path] = CACHE_DIR / "ipc.sock"


# Zed window title conventions
UNTITLED_WINDOW_TITLE: Final[str] = "empty project"
TITLE_SEPARATOR: Final[str] = " — "
WINDOW_LIST_DELIMITER: Final[str] = ", "

# Workspace history, most recently used first
WORKSPACE_PATHS_SQL: Final[str] = (
    "SELECT paths FROM workspaces WHERE paths IS NOT NULL ORDER BY timestamp DESC;"
)

# Defaults
DEFAULT_APP_NAME: Final[str] = "Zed"
DEFAULT_COMMAND_TIMEOUT: Final[float] = 3.0
DEFAULT_CACHE_TTL: Final[float] = 60.0
DEFAULT_POLL_INTERVAL: Final[float] = 1.0
MAX_SHORTCUT_SLOTS: Final[int] = 9

# AppleScript marker printed when a window was raised
ACTIVATED_MARKER: Final[str] = "activated"

# Paths that make the folder dialog stall on first enumeration
SLOW_PATH_FRAGMENTS: Final[tuple] = (
    "/Library/CloudStorage/",
    "/Library/Mobile Documents/",
)
SLOW_PATH_PREFIXES: Final[tuple] = (
    "/Volumes/",
    "/Network/",
)
