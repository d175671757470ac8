"""Authentication against the studio backend.

This module provides:
- Authenticator: validates a stored auth cookie and, when it is rejected,
  obtains a new one interactively (pasted token or username/password)

The validated cookie is written back to the TokenStore every time.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any

import click
import httpx

from studiosync.client.api import APIError, AuthenticationError, StudioClient
from studiosync.client.store import TokenStore
from studiosync.core.config import SyncSession, to_auth_cookie

logger = logging.getLogger(__name__)

TOKEN_HELP_BANNER = (
    "*" * 79,
    "* Open the URL below in the browser where your studio is logged in.         *",
    "* Copy the response content and paste it in the terminal.                    *",
    "*" * 79,
)


class Authenticator:
    """Obtains a valid auth cookie for a session.

    A cookie is valid when the project listing can be read with it. When the
    stored cookie is missing or rejected, the user is prompted; a second
    failed attempt raises AuthenticationError.
    """

    def __init__(
        self,
        token_store: TokenStore,
        client_factory: Callable[[SyncSession], StudioClient] = StudioClient,
        prompt: Callable[..., Any] = click.prompt,
        echo: Callable[..., Any] = click.echo,
        max_attempts: int = 2,
    ) -> None:
        """Initialize the authenticator.

        Args:
            token_store: Where the validated cookie is persisted.
            client_factory: Builds a StudioClient for a session.
            prompt: Interactive prompt (``click.prompt`` signature).
            echo: Output function for instructions.
            max_attempts: Interactive attempts before giving up.
        """
        self._token_store = token_store
        self._client_factory = client_factory
        self._prompt = prompt
        self._echo = echo
        self._max_attempts = max_attempts

    def stored_cookie(self) -> str:
        """Cookie persisted by an earlier run, or an empty string."""
        return self._token_store.load() or ""

    def is_authenticated(self, session: SyncSession) -> bool:
        """Check whether the session's cookie is accepted by the backend."""
        if not session.has_credential:
            return False
        try:
            with self._client_factory(session) as client:
                client.list_projects()
        except (APIError, httpx.HTTPError) as e:
            logger.debug("Stored credential rejected: %s", e)
            return False
        logger.info("User authenticated.")
        return True

    def authenticate(self, session: SyncSession, use_password: bool = False) -> SyncSession:
        """Return a session carrying a valid cookie.

        Args:
            session: Session with the candidate cookie (possibly empty).
            use_password: Prompt for username/password instead of a token.

        Returns:
            The same session if its cookie is valid, else a new one.

        Raises:
            AuthenticationError: If no valid cookie could be obtained.
        """
        if self.is_authenticated(session):
            self._token_store.save(session.auth_cookie)
            return session

        for attempt in range(self._max_attempts):
            if use_password:
                cookie = self._login_with_password(session)
            else:
                cookie = self._ask_for_token(session, show_help=attempt == 0)

            candidate = dataclasses.replace(session, auth_cookie=cookie)
            if cookie and self.is_authenticated(candidate):
                self._token_store.save(cookie)
                return candidate
            self._echo("Not able to login. Try again.")

        logger.info("Authentication failed after %d attempts", self._max_attempts)
        raise AuthenticationError(
            "Your authentication has failed. Please proceed with a valid token."
        )

    def _ask_for_token(self, session: SyncSession, show_help: bool) -> str:
        if show_help:
            for line in TOKEN_HELP_BANNER:
                self._echo(line)
            self._echo(f"\n{session.base_url}/studio/services/auth/token\n")
        token = self._prompt("token")
        return to_auth_cookie(str(token))

    def _login_with_password(self, session: SyncSession) -> str:
        username = self._prompt("username")
        password = self._prompt("password", hide_input=True)
        unauthenticated = dataclasses.replace(session, auth_cookie="")
        try:
            with self._client_factory(unauthenticated) as client:
                return client.login(str(username), str(password)) or ""
        except httpx.HTTPError as e:
            logger.debug("Login request failed: %s", e)
            return ""
