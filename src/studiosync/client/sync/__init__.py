"""Project synchronization and change detection.

Architecture:
    ChangeWatcher ─on_change─► pull() ─► ProjectSyncService ─► SyncProtocol
                                                    │              │
                                              StudioClient    GitRepository

Components:
- **ProjectSyncService**: setup, initial download, incremental pulls
- **SyncProtocol**: LegacyProtocol / BundleProtocol, chosen per call by
  select_protocol() from the project's platform version
- **ChangeWatcher**: polls the live preview, calls back on change
- **PlatformWatcher**: watches local runtime builds with watchdog
- **artifacts**: scoped scratch files/directories and archive helpers
"""

from studiosync.client.api import AuthenticationError, DownloadError
from studiosync.client.identity import ProjectNotFoundError
from studiosync.client.sync.artifacts import copy_tree, extract_zip, scratch_dir, scratch_file
from studiosync.client.sync.protocols import (
    PLATFORM_VERSION_THRESHOLD,
    BundleProtocol,
    LegacyProtocol,
    SyncProtocol,
    select_protocol,
)
from studiosync.client.sync.service import (
    ChangesCallback,
    ProjectSyncService,
    PullFunction,
    get_log_directory,
)
from studiosync.client.sync.watcher import (
    DEFAULT_WATCH_INTERVAL,
    ChangeWatcher,
    PlatformWatcher,
    WatchStrategy,
    detect_strategy,
)
from studiosync.client.vcs import GitCommandError, PatchApplyError

__all__ = [
    # Errors
    "AuthenticationError",
    "DownloadError",
    "GitCommandError",
    "PatchApplyError",
    "ProjectNotFoundError",
    # Artifacts
    "copy_tree",
    "extract_zip",
    "scratch_dir",
    "scratch_file",
    # Protocols
    "PLATFORM_VERSION_THRESHOLD",
    "BundleProtocol",
    "LegacyProtocol",
    "SyncProtocol",
    "select_protocol",
    # Service
    "ChangesCallback",
    "ProjectSyncService",
    "PullFunction",
    "get_log_directory",
    # Watchers
    "DEFAULT_WATCH_INTERVAL",
    "ChangeWatcher",
    "PlatformWatcher",
    "WatchStrategy",
    "detect_strategy",
]
