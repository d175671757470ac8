"""Resolution of a studio project from its display name and preview URL."""

from __future__ import annotations

import json
import logging

import httpx

from studiosync.client.api import APIError, StudioClient
from studiosync.core.config import SyncSession
from studiosync.core.types import RemoteProjectIdentity

logger = logging.getLogger(__name__)

APP_PROPERTIES_PATH = "/services/application/wmProperties.js"


class ProjectNotFoundError(Exception):
    """No listed project matches the session's name and preview URL."""


class IdentityResolver:
    """Maps a project display name and preview URL to a studio project."""

    def __init__(self, client: StudioClient) -> None:
        self._client = client

    def resolve(self, session: SyncSession) -> RemoteProjectIdentity:
        """Find the project the session points at.

        A project matches when its display name equals the session's project
        name and the preview URL ends with ``{name}_{vcsBranchId}``.

        Raises:
            ProjectNotFoundError: If no listed project matches.
            AuthenticationError: If the listing is refused.
        """
        for entry in self._client.list_projects():
            if entry.get("displayName") != session.project_name:
                continue
            try:
                identity = RemoteProjectIdentity.from_dict(entry)
            except KeyError as e:
                logger.debug("Skipping incomplete project entry: missing %s", e)
                continue
            if session.preview_url.endswith(identity.preview_suffix):
                logger.info(
                    "Resolved project '%s' to %s (platform %s)",
                    identity.display_name,
                    identity.id,
                    identity.platform_version or "unknown",
                )
                return identity

        raise ProjectNotFoundError(
            f"Project '{session.project_name}' not found for {session.preview_url}"
        )


def fetch_display_name(preview_url: str, timeout: float = 30.0) -> str:
    """Read the project display name published by a running preview.

    The preview serves ``wmProperties.js`` as a single ``x = {...};``
    assignment.

    Raises:
        APIError: If the properties cannot be fetched or parsed.
    """
    url = preview_url.rstrip("/") + APP_PROPERTIES_PATH
    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise APIError(f"Could not reach preview at {preview_url}: {e}") from e
    if response.status_code != 200:
        raise APIError(
            f"Could not read application properties ({response.status_code})",
            response.status_code,
        )

    _, _, payload = response.text.partition("=")
    try:
        properties = json.loads(payload.strip().rstrip(";"))
        return str(properties["displayName"])
    except (ValueError, KeyError, TypeError) as e:
        raise APIError(f"Invalid application properties at {url}") from e
