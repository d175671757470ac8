"""Core module - Session configuration and shared value types."""

from studiosync.core.config import AUTH_COOKIE_NAME, SyncSession, to_auth_cookie
from studiosync.core.types import (
    BundleInfo,
    ChangeRecord,
    ChangeStatus,
    RemoteProjectIdentity,
    SyncState,
    VersionLineage,
    parse_version,
)

__all__ = [
    # Config
    "AUTH_COOKIE_NAME",
    "SyncSession",
    "to_auth_cookie",
    # Types
    "BundleInfo",
    "ChangeRecord",
    "ChangeStatus",
    "RemoteProjectIdentity",
    "SyncState",
    "VersionLineage",
    "parse_version",
]
