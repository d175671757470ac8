"""Credential commands for the studiosync CLI.

Commands:
- logout: Forget the stored studio credential
"""

from __future__ import annotations

import sys

import click

from studiosync.client.cli.config import get_store_dir, get_token_store
from studiosync.client.store import StoreError


@click.command()
def logout() -> None:
    """Forget the stored studio credential.

    The next sync will ask for a new token. Project folders are kept.
    """
    token_store = get_token_store()

    try:
        if not token_store.load():
            click.echo("Not logged in.")
            return
        token_store.clear()
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(f"Delete {get_store_dir()} to start over.")
        sys.exit(1)

    click.echo("Stored credential removed.")
