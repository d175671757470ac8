"""Configuration utilities for the studiosync CLI.

This module provides shared path helpers used across CLI commands.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from studiosync.client.store import JsonFileStore, TokenStore

HOME_ENV_VAR = "STUDIOSYNC_HOME"
CODEBASE_ENV_VAR = "WAVEMAKER_STUDIO_FRONTEND_CODEBASE"


def get_config_dir() -> Path:
    """Get the tool home directory.

    Returns:
        ``$STUDIOSYNC_HOME`` if set, else ``~/.studiosync``.
    """
    configured = os.environ.get(HOME_ENV_VAR)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".studiosync"


def get_store_dir() -> Path:
    """Directory holding the local key-value store."""
    return get_config_dir() / ".store"


def get_projects_dir() -> Path:
    """Directory under which project working trees are created by default."""
    return get_config_dir() / "projects"


def get_token_store() -> TokenStore:
    """Token store persisted in the tool home."""
    return TokenStore(JsonFileStore(get_store_dir()))


def sanitize_project_name(name: str) -> str:
    """Make a project display name safe to use as a directory name.

    Whitespace and parentheses become underscores, as do path separators.

    Args:
        name: The project display name.

    Returns:
        Safe directory name.
    """
    return re.sub(r"[\s()/\\]", "_", name.strip())


def get_project_dir(project_name: str) -> Path:
    """Default working tree location for a project."""
    return get_projects_dir() / sanitize_project_name(project_name)
