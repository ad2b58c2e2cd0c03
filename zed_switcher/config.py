"""Configuration loader for zed-switcher.

Reads an optional config.json from the application support directory. Every
field has a default, so a missing file simply means "use defaults".
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    ConfigPaths,
    DEFAULT_APP_NAME,
    DEFAULT_CACHE_TTL,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    MAX_SHORTCUT_SLOTS,
)

logger = logging.getLogger(__name__)


class SwitcherConfig(BaseModel):
    """Daemon settings."""

    app_name: str = Field(DEFAULT_APP_NAME, min_length=1, description="Process name of the editor")
    command_timeout: float = Field(DEFAULT_COMMAND_TIMEOUT, gt=0, description="Seconds before an external command is killed")
    cache_ttl: float = Field(DEFAULT_CACHE_TTL, gt=0, description="Workspace cache time-to-live in seconds")
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0, description="Frontmost-app poll interval in seconds")
    shortcut_slots: int = Field(MAX_SHORTCUT_SLOTS, ge=1, le=MAX_SHORTCUT_SLOTS)

    zed_db_path: Path = ConfigPaths.ZED_DB_FILE
    projects_file: Path = ConfigPaths.PROJECTS_FILE
    dialog_state_file: Path = ConfigPaths.DIALOG_STATE_FILE
    socket_path: Path = ConfigPaths.SOCKET_PATH

    # Frontmost processes (besides the editor) that keep the bar visible
    companion_process_names: List[str] = Field(default_factory=lambda: ["electron"])

    @field_validator('zed_db_path', 'projects_file', 'dialog_state_file', 'socket_path', mode='before')
    @classmethod
    def expand_user(cls, v):
        """Allow ~ in configured paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @field_validator('companion_process_names')
    @classmethod
    def lowercase_names(cls, v: List[str]) -> List[str]:
        return [name.lower() for name in v]


def load_config(config_file: Optional[Path] = None) -> SwitcherConfig:
    """Load daemon configuration from JSON file.

    Args:
        config_file: Path to config.json (defaults to ConfigPaths.CONFIG_FILE)

    Returns:
        SwitcherConfig; defaults when the file is missing or invalid
    """
    config_file = config_file or ConfigPaths.CONFIG_FILE

    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using defaults")
        return SwitcherConfig()

    try:
        with open(config_file) as f:
            data = json.load(f)
        config = SwitcherConfig(**data)
        logger.info(f"Loaded configuration from {config_file}")
        return config
    except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.error(f"Invalid configuration in {config_file}, using defaults: {e}")
        return SwitcherConfig()
