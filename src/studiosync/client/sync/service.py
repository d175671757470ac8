"""Project synchronization service.

This module provides:
- ProjectSyncService: authenticates, resolves the studio project, performs
  the initial download and then incremental pulls on demand

Lifecycle:
    UNAUTHENTICATED ─setup()─► AUTHENTICATED ─download_project()─► INITIALIZED
        ─setup_project() returns pull─► IDLE ⇄ PULLING

setup_project() is the entry point for the CLI. The callable it returns
performs exactly one pull per call and never raises: failures are logged
and reported as ``False`` so a polling loop can simply call it again.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from studiosync.client.api import StudioClient
from studiosync.client.auth import Authenticator
from studiosync.client.identity import IdentityResolver
from studiosync.client.sync.protocols import select_protocol
from studiosync.client.vcs import OUTPUT_DIR_NAME, GitRepository
from studiosync.core.config import SyncSession, to_auth_cookie
from studiosync.core.types import (
    ChangeRecord,
    RemoteProjectIdentity,
    SyncState,
    VersionLineage,
)

logger = logging.getLogger(__name__)

ChangesCallback = Callable[[list[ChangeRecord]], None]
PullFunction = Callable[[], bool]


def get_log_directory(project_dir: Path) -> Path:
    """Directory inside the working tree where run logs are kept."""
    return Path(project_dir) / OUTPUT_DIR_NAME / "logs"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ProjectSyncService:
    """Keeps one local working tree in sync with a studio project.

    The working tree is written only by this service, and pulls never run
    concurrently: pull_changes() holds a lock for its whole duration.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        client_factory: Callable[[SyncSession], StudioClient] = StudioClient,
        on_changes: ChangesCallback | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            authenticator: Validates or obtains the session credential.
            client_factory: Builds the transport client for a session.
            on_changes: Called with the changed files after each successful
                download or pull.
        """
        self._authenticator = authenticator
        self._client_factory = client_factory
        self._on_changes = on_changes

        self._lineage = VersionLineage()
        self._state = SyncState.UNAUTHENTICATED
        self._initialized_dirs: set[Path] = set()
        self._client: StudioClient | None = None
        self._lock = threading.Lock()

        self.last_changes: list[ChangeRecord] = []

    @property
    def state(self) -> SyncState:
        """Current lifecycle state."""
        return self._state

    @property
    def lineage(self) -> VersionLineage:
        """Commit lineage recorded from the last backend response."""
        return self._lineage

    def is_downloaded(self, project_dir: Path) -> bool:
        """Whether an initial download into ``project_dir`` succeeded in this run.

        A ``.git`` left over from an earlier run does not count.
        """
        return Path(project_dir).resolve() in self._initialized_dirs

    def close(self) -> None:
        """Close the transport client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _client_for(self, session: SyncSession) -> StudioClient:
        if self._client is None or self._client.session != session:
            self.close()
            self._client = self._client_factory(session)
        return self._client

    # === Setup ===

    def setup(
        self,
        preview_url: str,
        project_name: str,
        auth_token: str | None = None,
        use_password: bool = False,
    ) -> SyncSession:
        """Create an authenticated session for a preview URL.

        An explicit token wins over the stored credential. The credential is
        validated (and re-entered interactively if rejected) before use.

        Raises:
            AuthenticationError: If no valid credential could be obtained.
        """
        if auth_token:
            cookie = to_auth_cookie(auth_token)
        else:
            cookie = self._authenticator.stored_cookie()
        session = SyncSession.from_preview_url(preview_url, project_name, cookie)
        session = self._authenticator.authenticate(session, use_password=use_password)
        self._state = SyncState.AUTHENTICATED
        return session

    def find_project(self, session: SyncSession) -> RemoteProjectIdentity:
        """Resolve the session's project.

        Raises:
            ProjectNotFoundError: If the project is not listed.
        """
        return IdentityResolver(self._client_for(session)).resolve(session)

    # === Download / pull ===

    def download_project(
        self,
        session: SyncSession,
        identity: RemoteProjectIdentity,
        project_dir: Path,
    ) -> bool:
        """Download the whole project into ``project_dir``.

        Returns:
            True on success. Failures are logged, not raised.
        """
        project_dir = Path(project_dir)
        start = time.monotonic()
        protocol = select_protocol(identity.platform_version)
        repo = GitRepository(project_dir)
        logger.info("Downloading the project (%s protocol)...", protocol.name)

        try:
            protocol.initial_download(
                self._client_for(session), identity, repo, self._lineage
            )
            log_dir = get_log_directory(project_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Log directory = %s", log_dir)
            self._report_changes(repo)
        except Exception as e:
            logger.warning(
                "%s The download of the project has encountered an issue. "
                "Please ensure that the preview is active.",
                e,
            )
            logger.debug("Full traceback:", exc_info=True)
            return False

        self._initialized_dirs.add(project_dir.resolve())
        self._state = SyncState.INITIALIZED
        logger.info("Downloaded the project in %d ms.", _elapsed_ms(start))
        return True

    def pull_changes(
        self,
        session: SyncSession,
        identity: RemoteProjectIdentity,
        project_dir: Path,
    ) -> bool:
        """Pull the changes made in the studio since the last pull.

        If the initial download never succeeded for ``project_dir``, it is
        attempted instead.

        Returns:
            True on success. Failures are logged, not raised, and leave the
            service IDLE so the next call can try again.
        """
        project_dir = Path(project_dir)
        with self._lock:
            if project_dir.resolve() not in self._initialized_dirs:
                logger.info("Project is not downloaded yet, retrying the download")
                if not self.download_project(session, identity, project_dir):
                    return False
                self._state = SyncState.IDLE
                return True

            self._state = SyncState.PULLING
            start = time.monotonic()
            protocol = select_protocol(identity.platform_version)
            repo = GitRepository(project_dir)
            logger.info("Pulling changes from studio (%s protocol)...", protocol.name)

            try:
                protocol.incremental_pull(
                    self._client_for(session), identity, repo, self._lineage
                )
                head_commit_id = repo.head_commit_id()
                self._report_changes(repo)
            except Exception as e:
                logger.warning(
                    "%s The attempt to pull changes was unsuccessful. "
                    "Please verify your connection.",
                    e,
                )
                logger.debug("Full traceback:", exc_info=True)
                return False
            finally:
                self._state = SyncState.IDLE

            logger.info(
                "Pulled new changes from studio - head commit id %s (%d ms)",
                head_commit_id,
                _elapsed_ms(start),
            )
            return True

    def _report_changes(self, repo: GitRepository) -> None:
        """Diff the two newest commits and hand the result to on_changes."""
        if repo.has_commit("HEAD~1"):
            changes = repo.diff_name_status("HEAD~1", "HEAD")
        else:
            changes = []
        self.last_changes = changes
        logger.debug("%d files changed", len(changes))
        if self._on_changes is not None:
            self._on_changes(changes)

    # === Entry point ===

    def setup_project(
        self,
        preview_url: str,
        project_name: str,
        project_dir: Path,
        auth_token: str | None = None,
        use_password: bool = False,
    ) -> PullFunction:
        """Authenticate, resolve and download a project.

        Returns:
            A zero-argument function performing one incremental pull per call.

        Raises:
            AuthenticationError: If authentication fails.
            ProjectNotFoundError: If the project cannot be resolved.
        """
        session = self.setup(preview_url, project_name, auth_token, use_password)
        identity = self.find_project(session)
        project_dir = Path(project_dir)
        if self.download_project(session, identity, project_dir):
            self._state = SyncState.IDLE
        return functools.partial(self.pull_changes, session, identity, project_dir)
