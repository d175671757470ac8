"""Shared types for studiosync.

This module defines the value types exchanged between the transport client,
the git adapter and the sync service.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_WEBAPP_PREFIX_RE = re.compile(r"^.*webapp/")


def parse_version(version: str | None) -> tuple[int, int, int]:
    """Coerce a version string into a ``(major, minor, patch)`` tuple.

    Only the leading numeric part is used, so ``"11.4.0-rc.2"`` gives
    ``(11, 4, 0)`` and ``"11"`` gives ``(11, 0, 0)``. Strings with no
    digits give ``(0, 0, 0)``.
    """
    if not version:
        return (0, 0, 0)
    match = _VERSION_RE.search(version)
    if not match:
        return (0, 0, 0)
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return (major, minor, patch)


class SyncState(str, Enum):
    """Lifecycle state of a ProjectSyncService.

    There is no terminal state: once IDLE, the service alternates between
    IDLE and PULLING for as long as the caller keeps pulling.
    """

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    INITIALIZED = "initialized"
    IDLE = "idle"
    PULLING = "pulling"


@dataclass(frozen=True)
class RemoteProjectIdentity:
    """A studio project resolved from the project listing."""

    id: str
    display_name: str
    name: str
    branch_id: str
    platform_version: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteProjectIdentity:
        """Create from a project listing entry."""
        return cls(
            id=str(data["studioProjectId"]),
            display_name=data["displayName"],
            name=data["name"],
            branch_id=data["vcsBranchId"],
            platform_version=data.get("platformVersion") or "",
        )

    @property
    def preview_suffix(self) -> str:
        """Suffix the preview URL of this project ends with."""
        return f"{self.name}_{self.branch_id}"


@dataclass
class VersionLineage:
    """Where the local tree stands relative to the remote history.

    Owned by a single ProjectSyncService. ``remote_base_commit_id`` is only
    ever set from a backend response, after the tree was updated from it.
    """

    remote_base_commit_id: str = ""
    workspace_platform_version: str = ""


@dataclass(frozen=True)
class BundleInfo:
    """Bundle metadata returned by the snapshot and delta endpoints."""

    file_id: str
    remote_base_commit_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BundleInfo:
        """Create from API response dictionary."""
        return cls(
            file_id=str(data["fileId"]),
            remote_base_commit_id=data.get("remoteBaseCommitId") or "",
        )


class ChangeStatus(str, Enum):
    """Kind of change reported by ``git diff --name-status``."""

    ADDED = "A"
    DELETED = "D"
    MODIFIED = "M"
    OTHER = "?"

    @classmethod
    def from_code(cls, code: str) -> ChangeStatus:
        """Map a git status code (``A``, ``M``, ``R100``...) to a status."""
        for status in (cls.ADDED, cls.DELETED, cls.MODIFIED):
            if code == status.value:
                return status
        return cls.OTHER


@dataclass(frozen=True)
class ChangeRecord:
    """One file changed between the two newest commits. Informational only."""

    status: ChangeStatus
    file_path: str
    code: str

    @classmethod
    def from_diff_line(cls, line: str) -> ChangeRecord | None:
        """Parse a ``git diff --name-status`` output line.

        Returns None for blank lines.
        """
        parts = line.strip().split()
        if not parts:
            return None
        code, file_parts = parts[0], parts[1:]
        file_path = _WEBAPP_PREFIX_RE.sub("", " ".join(file_parts))
        return cls(
            status=ChangeStatus.from_code(code),
            file_path=file_path,
            code=code,
        )
