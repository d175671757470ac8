"""Session configuration shared by the transport client and the sync service.

This module defines the SyncSession value passed to every remote operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

AUTH_COOKIE_NAME = "auth_cookie"


def to_auth_cookie(token: str) -> str:
    """Turn a raw token (or a pasted cookie string) into a cookie header value.

    Anything after the first ``;`` is dropped, so a full ``Set-Cookie``
    value pasted from a browser is accepted too.

    Args:
        token: Token value, optionally already prefixed with ``auth_cookie=``.

    Returns:
        Cookie header value such as ``auth_cookie=abc``, or an empty string.
    """
    value = token.split(";")[0].strip()
    if not value:
        return ""
    if value.startswith(f"{AUTH_COOKIE_NAME}="):
        return value
    return f"{AUTH_COOKIE_NAME}={value}"


@dataclass(frozen=True)
class SyncSession:
    """Everything needed to talk to the studio backend for one project.

    Created once when the session starts. Re-authentication produces a new
    session via ``dataclasses.replace`` with a different ``auth_cookie``.

    Attributes:
        auth_cookie: Cookie header value (``auth_cookie=...``), may be empty.
        base_url: Backend origin derived from the preview URL.
        preview_url: Live preview URL, without trailing slash.
        project_name: Display name of the project in the studio.
        timeout: Request timeout in seconds.
    """

    auth_cookie: str
    base_url: str
    preview_url: str
    project_name: str
    timeout: float = 30.0

    @classmethod
    def from_preview_url(
        cls,
        preview_url: str,
        project_name: str,
        auth_cookie: str = "",
        timeout: float = 30.0,
    ) -> SyncSession:
        """Build a session, deriving the backend origin from the preview URL.

        Raises:
            ValueError: If the preview URL has no scheme or host.
        """
        preview_url = preview_url.rstrip("/")
        parts = urlsplit(preview_url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Invalid preview URL: {preview_url!r}")
        return cls(
            auth_cookie=auth_cookie,
            base_url=f"{parts.scheme}://{parts.netloc}",
            preview_url=preview_url,
            project_name=project_name,
            timeout=timeout,
        )

    @property
    def has_credential(self) -> bool:
        """Whether an auth cookie is present (not whether it is valid)."""
        return bool(self.auth_cookie)
