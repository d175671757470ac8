"""HTTP client for the studio backend.

This module provides:
- StudioClient: authenticated HTTP client for one SyncSession
- Project listing, snapshot/delta requests and streamed file downloads
- Username/password login returning an auth cookie
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Any

import httpx

from studiosync.core.config import AUTH_COOKIE_NAME, SyncSession
from studiosync.core.types import BundleInfo

logger = logging.getLogger(__name__)

PROJECTS_LIST_PATH = "/edn-services/rest/users/projects/list"
LOGIN_PATH = "/login/authenticate"
FILE_SERVICE_PATH = "/file-service"


def _vcs_path(project_id: str, action: str) -> str:
    return f"/studio/services/projects/{project_id}/vcs/{action}"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """The session credential was rejected or could not be obtained."""


class DownloadError(APIError):
    """A snapshot, delta or file download did not complete."""


class StudioClient:
    """HTTP client for the studio backend.

    Every request carries the session's auth cookie. Nothing is retried
    here; a failed request raises and the caller decides what to do.
    """

    def __init__(self, session: SyncSession) -> None:
        """Initialize the client.

        Args:
            session: Session providing the backend origin, cookie and timeout.
        """
        self._session = session
        headers = {}
        if session.auth_cookie:
            headers["cookie"] = session.auth_cookie
        self._client = httpx.Client(
            base_url=session.base_url,
            timeout=session.timeout,
            headers=headers,
        )

    @property
    def session(self) -> SyncSession:
        """Session this client was created for."""
        return self._session

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> StudioClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired auth cookie", response.status_code)
        if response.status_code >= 400:
            raise APIError(
                f"{response.request.method} {response.request.url.path} "
                f"failed with status {response.status_code}",
                response.status_code,
            )
        return response

    # === Authentication ===

    def login(self, username: str, password: str) -> str | None:
        """Log in with studio credentials.

        The backend answers with a redirect carrying the session cookie;
        redirects are not followed.

        Returns:
            Cookie header value (``auth_cookie=...``), or None if the backend
            did not hand out a session cookie.
        """
        response = self._client.post(
            LOGIN_PATH,
            data={"j_username": username, "j_password": password},
            follow_redirects=False,
        )
        for header in response.headers.get_list("set-cookie"):
            if AUTH_COOKIE_NAME in header:
                return header.split(";")[0].strip()
        logger.debug("Login response %d carried no auth cookie", response.status_code)
        return None

    # === Projects ===

    def list_projects(self) -> list[dict[str, Any]]:
        """List the projects visible to the authenticated user.

        Raises:
            AuthenticationError: If the cookie is rejected. An unauthenticated
                request may also be answered with the HTML login page, which
                is reported the same way.
        """
        response = self._handle_response(self._client.get(PROJECTS_LIST_PATH))
        try:
            projects = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Project listing is not JSON, the session is not authenticated",
                response.status_code,
            ) from e
        if not isinstance(projects, list):
            raise APIError("Unexpected project listing format", response.status_code)
        return projects

    # === Bundle protocol ===

    def request_snapshot(self, project_id: str) -> BundleInfo:
        """Ask for the full history of a project as a bundle file."""
        return self._request_bundle_info(_vcs_path(project_id, "gitBare"))

    def request_delta(
        self,
        project_id: str,
        workspace_commit_id: str,
        remote_base_commit_id: str,
    ) -> BundleInfo:
        """Ask for a bundle with the changes since a known point.

        Args:
            project_id: Studio project id.
            workspace_commit_id: Local HEAD commit id.
            remote_base_commit_id: Remote base id from the previous response.
        """
        return self._request_bundle_info(
            _vcs_path(project_id, "pull"),
            params={
                "lastPulledWorkspaceCommitId": workspace_commit_id,
                "lastPulledRemoteHeadCommitId": remote_base_commit_id,
            },
        )

    def download_stream(self, file_id: str, dest: Path) -> Path:
        """Stream a file from the file service into ``dest``."""
        return self._stream_to_file(f"{FILE_SERVICE_PATH}/{file_id}", dest)

    def _request_bundle_info(
        self, path: str, params: dict[str, str] | None = None
    ) -> BundleInfo:
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise DownloadError(f"Request to {path} failed: {e}") from e
        if response.status_code != 200:
            raise DownloadError(
                f"Request to {path} failed with status {response.status_code}",
                response.status_code,
            )
        try:
            return BundleInfo.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise DownloadError(f"Invalid bundle metadata from {path}: {e}") from e

    # === Legacy protocol ===

    def download_git_init(self, project_id: str, dest: Path) -> Path:
        """Download a zip archive of the project's whole ``.git`` directory."""
        return self._stream_to_file(_vcs_path(project_id, "gitInit"), dest)

    def download_remote_changes(
        self, project_id: str, head_commit_id: str, dest: Path
    ) -> Path:
        """Download a zip with a patch, a bundle and binary files since HEAD."""
        return self._stream_to_file(
            _vcs_path(project_id, "remoteChanges"),
            dest,
            params={"headCommitId": head_commit_id},
        )

    # === Streaming ===

    def _stream_to_file(
        self,
        path: str,
        dest: Path,
        params: dict[str, str] | None = None,
    ) -> Path:
        """Stream a response body to disk.

        A partially written file is removed if anything goes wrong.

        Raises:
            DownloadError: On a non-200 status or a transport failure.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._client.stream("GET", path, params=params) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        f"Download of {path} failed with status {response.status_code}",
                        response.status_code,
                    )
                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            _discard(dest)
            raise DownloadError(f"Download of {path} failed: {e}") from e
        except Exception:
            _discard(dest)
            raise

        logger.debug("Downloaded %s to %s (%d bytes)", path, dest, dest.stat().st_size)
        return dest


def _discard(path: Path) -> None:
    if path.exists():
        with contextlib.suppress(OSError):
            path.unlink()
