"""Tests for the studio HTTP client."""

from pathlib import Path

import httpx
import pytest

from studiosync.client.api import (
    APIError,
    AuthenticationError,
    DownloadError,
    StudioClient,
)
from studiosync.core.config import SyncSession

BASE = "https://studio.test"
VCS = f"{BASE}/studio/services/projects/p1/vcs"


def make_session(auth_cookie: str = "auth_cookie=abc") -> SyncSession:
    """Create a SyncSession for testing."""
    return SyncSession.from_preview_url(f"{BASE}/foo_dev", "Foo", auth_cookie)


class TestStudioClientProjects:
    """Tests for project listing."""

    def test_list_projects(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the decoded project list and send the cookie."""
        httpx_mock.add_response(
            url=f"{BASE}/edn-services/rest/users/projects/list",
            json=[{"displayName": "Foo", "name": "foo"}],
        )

        with StudioClient(make_session()) as client:
            projects = client.list_projects()

        assert projects == [{"displayName": "Foo", "name": "foo"}]
        request = httpx_mock.get_request()
        assert request.headers["cookie"] == "auth_cookie=abc"

    def test_list_projects_unauthorized(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should raise AuthenticationError on 401."""
        httpx_mock.add_response(
            url=f"{BASE}/edn-services/rest/users/projects/list", status_code=401
        )

        with StudioClient(make_session()) as client, pytest.raises(AuthenticationError):
            client.list_projects()

    def test_list_projects_login_page(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """An HTML login page means the cookie is not valid."""
        httpx_mock.add_response(
            url=f"{BASE}/edn-services/rest/users/projects/list",
            text="<html><title>Login</title></html>",
        )

        with StudioClient(make_session()) as client, pytest.raises(AuthenticationError):
            client.list_projects()

    def test_list_projects_server_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Other errors should raise APIError with the status code."""
        httpx_mock.add_response(
            url=f"{BASE}/edn-services/rest/users/projects/list", status_code=500
        )

        with StudioClient(make_session()) as client, pytest.raises(APIError) as exc_info:
            client.list_projects()
        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, AuthenticationError)

    def test_no_cookie_header_without_credential(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A session without a cookie should not send one."""
        httpx_mock.add_response(
            url=f"{BASE}/edn-services/rest/users/projects/list", json=[]
        )

        with StudioClient(make_session("")) as client:
            client.list_projects()

        assert "cookie" not in httpx_mock.get_request().headers


class TestStudioClientLogin:
    """Tests for username/password login."""

    def test_login_returns_auth_cookie(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should pick the auth cookie out of Set-Cookie headers."""
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/login/authenticate",
            status_code=302,
            headers=[
                ("set-cookie", "JSESSIONID=s1; Path=/"),
                ("set-cookie", "auth_cookie=xyz; Path=/; HttpOnly"),
                ("location", f"{BASE}/"),
            ],
        )

        with StudioClient(make_session("")) as client:
            cookie = client.login("me", "secret")

        assert cookie == "auth_cookie=xyz"
        request = httpx_mock.get_request()
        assert b"j_username=me" in request.content
        assert b"j_password=secret" in request.content

    def test_login_without_cookie(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return None when no auth cookie is handed out."""
        httpx_mock.add_response(
            method="POST", url=f"{BASE}/login/authenticate", status_code=200
        )

        with StudioClient(make_session("")) as client:
            assert client.login("me", "wrong") is None


class TestStudioClientBundles:
    """Tests for the bundle protocol endpoints."""

    def test_request_snapshot(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should parse the gitBare response."""
        httpx_mock.add_response(
            url=f"{VCS}/gitBare",
            json={"fileId": "f1", "remoteBaseCommitId": "def456"},
        )

        with StudioClient(make_session()) as client:
            info = client.request_snapshot("p1")

        assert info.file_id == "f1"
        assert info.remote_base_commit_id == "def456"

    def test_request_delta_sends_lineage(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should send the local HEAD and the last remote base."""
        httpx_mock.add_response(
            url=(
                f"{VCS}/pull?lastPulledWorkspaceCommitId=abc123"
                "&lastPulledRemoteHeadCommitId=def456"
            ),
            json={"fileId": "f2", "remoteBaseCommitId": "ghi789"},
        )

        with StudioClient(make_session()) as client:
            info = client.request_delta("p1", "abc123", "def456")

        assert info.file_id == "f2"
        assert info.remote_base_commit_id == "ghi789"

    def test_request_delta_failure(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A non-200 answer should raise DownloadError."""
        httpx_mock.add_response(
            url=f"{VCS}/pull?lastPulledWorkspaceCommitId=a&lastPulledRemoteHeadCommitId=b",
            status_code=500,
        )

        with StudioClient(make_session()) as client, pytest.raises(DownloadError):
            client.request_delta("p1", "a", "b")

    def test_invalid_bundle_metadata(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A response without fileId should raise DownloadError."""
        httpx_mock.add_response(url=f"{VCS}/gitBare", json={"unexpected": True})

        with StudioClient(make_session()) as client, pytest.raises(DownloadError):
            client.request_snapshot("p1")


class TestStudioClientDownloads:
    """Tests for streamed downloads."""

    def test_download_stream(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should write the response body to the destination."""
        httpx_mock.add_response(url=f"{BASE}/file-service/f1", content=b"bundle-bytes")
        dest = tmp_path / "nested" / "remoteChanges.bundle"

        with StudioClient(make_session()) as client:
            result = client.download_stream("f1", dest)

        assert result == dest
        assert dest.read_bytes() == b"bundle-bytes"

    def test_download_failure_leaves_no_file(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A non-200 download should raise and leave nothing behind."""
        httpx_mock.add_response(url=f"{BASE}/file-service/f1", status_code=404)
        dest = tmp_path / "out.bundle"

        with StudioClient(make_session()) as client, pytest.raises(DownloadError) as exc_info:
            client.download_stream("f1", dest)

        assert exc_info.value.status_code == 404
        assert not dest.exists()

    def test_transport_error_wrapped(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Transport errors should surface as DownloadError."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=f"{BASE}/file-service/f1")
        dest = tmp_path / "out.bundle"

        with StudioClient(make_session()) as client, pytest.raises(DownloadError):
            client.download_stream("f1", dest)

        assert not dest.exists()

    def test_download_git_init(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should fetch the gitInit archive."""
        httpx_mock.add_response(url=f"{VCS}/gitInit", content=b"PK")

        with StudioClient(make_session()) as client:
            client.download_git_init("p1", tmp_path / "git.zip")

        assert (tmp_path / "git.zip").read_bytes() == b"PK"

    def test_download_remote_changes(self, httpx_mock, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Should pass the local HEAD as headCommitId."""
        httpx_mock.add_response(
            url=f"{VCS}/remoteChanges?headCommitId=abc123", content=b"PK"
        )

        with StudioClient(make_session()) as client:
            client.download_remote_changes("p1", "abc123", tmp_path / "changes.zip")

        assert (tmp_path / "changes.zip").exists()
