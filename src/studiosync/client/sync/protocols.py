"""Snapshot/delta protocols for synchronizing a working tree.

The studio speaks one of two incompatible protocols depending on the
project's platform version:

- LegacyProtocol (platform < 11.4.0): the snapshot is a zip of the whole
  ``.git`` directory; a delta is a zip holding a git bundle, a unified diff
  of uncommitted changes and a directory of raw binary files.
- BundleProtocol (platform >= 11.4.0): the backend first returns metadata
  ``{fileId, remoteBaseCommitId}`` and the bundle is then streamed from the
  file service. Deltas are requested relative to the last remote base.

Use select_protocol() at every call site; the choice is never cached.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from studiosync.client.api import StudioClient
from studiosync.client.sync.artifacts import copy_tree, extract_zip, scratch_dir, scratch_file
from studiosync.client.vcs import GitRepository
from studiosync.core.types import RemoteProjectIdentity, VersionLineage, parse_version

logger = logging.getLogger(__name__)

PLATFORM_VERSION_THRESHOLD = "11.4.0"

REMOTE_BUNDLE_NAME = "remoteChanges.bundle"
PATCH_FILE_NAME = "patchFile.patch"
BINARY_FILES_DIR = "binaryFiles"


class SyncProtocol(ABC):
    """One way of moving project history from the studio to the working tree."""

    name: str = ""

    @abstractmethod
    def initial_download(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        """Materialize the full project into ``repo.work_tree``."""

    @abstractmethod
    def incremental_pull(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        """Bring an existing working tree up to date with the studio."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _reset_to_bundle(repo: GitRepository, bundle: Path) -> None:
    """Make the working tree match the master branch of a bundle.

    Untracked files are removed, except the ``output/`` directory.
    """
    repo.clean_except_output()
    repo.fetch_ref(bundle)
    repo.reset_hard_to_fetch_head()


class LegacyProtocol(SyncProtocol):
    """Protocol for projects on platform versions before 11.4.0."""

    name = "legacy"

    def initial_download(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        with scratch_file(prefix="project_", suffix=".zip") as archive:
            client.download_git_init(identity.id, archive)
            repo.git_dir.mkdir(parents=True, exist_ok=True)
            extract_zip(archive, repo.git_dir)
        repo.restore_working_tree()
        lineage.workspace_platform_version = identity.platform_version

    def incremental_pull(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        head_commit_id = repo.head_commit_id()
        logger.debug("HEAD commit id is %s", head_commit_id)

        with scratch_dir(prefix="changes_") as scratch:
            archive = client.download_remote_changes(
                identity.id, head_commit_id, scratch / "changes.zip"
            )
            changes = extract_zip(archive, scratch / "changes")

            _reset_to_bundle(repo, changes / REMOTE_BUNDLE_NAME)
            repo.apply_patch(changes / PATCH_FILE_NAME)
            logger.debug("Copying uncommitted binary files")
            copy_tree(changes / BINARY_FILES_DIR, repo.work_tree)

        lineage.workspace_platform_version = identity.platform_version


class BundleProtocol(SyncProtocol):
    """Protocol for projects on platform version 11.4.0 and later."""

    name = "bundle"

    def initial_download(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        info = client.request_snapshot(identity.id)

        with scratch_dir(prefix="project_") as scratch:
            archive = client.download_stream(info.file_id, scratch / "project.zip")
            if repo.exists:
                # Bare repository contents go straight into the existing .git
                extract_zip(archive, repo.git_dir)
                repo.unset_bare()
                repo.restore_working_tree()
            else:
                source = extract_zip(archive, scratch / "repo")
                shutil.rmtree(repo.work_tree, ignore_errors=True)
                repo.work_tree.parent.mkdir(parents=True, exist_ok=True)
                GitRepository.clone(source, repo.work_tree)

        lineage.remote_base_commit_id = info.remote_base_commit_id
        lineage.workspace_platform_version = identity.platform_version

    def incremental_pull(
        self,
        client: StudioClient,
        identity: RemoteProjectIdentity,
        repo: GitRepository,
        lineage: VersionLineage,
    ) -> None:
        head_commit_id = repo.head_commit_id()
        logger.debug(
            "Requesting delta since workspace %s / remote %s",
            head_commit_id,
            lineage.remote_base_commit_id or "(none)",
        )
        info = client.request_delta(
            identity.id, head_commit_id, lineage.remote_base_commit_id
        )

        with scratch_dir(prefix="changes_") as scratch:
            bundle = client.download_stream(info.file_id, scratch / REMOTE_BUNDLE_NAME)
            _reset_to_bundle(repo, bundle)

        lineage.remote_base_commit_id = info.remote_base_commit_id
        lineage.workspace_platform_version = identity.platform_version


def select_protocol(platform_version: str) -> SyncProtocol:
    """Pick the protocol for a project's platform version."""
    if parse_version(platform_version) < parse_version(PLATFORM_VERSION_THRESHOLD):
        return LegacyProtocol()
    return BundleProtocol()
