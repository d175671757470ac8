"""Command-line interface for studiosync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Download a studio project and keep it in sync with its preview
- logout: Forget the stored studio credential
"""

from __future__ import annotations

import click

from studiosync.client.cli.config import (
    get_config_dir,
    get_project_dir,
    get_projects_dir,
    get_store_dir,
    get_token_store,
    sanitize_project_name,
)
from studiosync.client.cli.credentials import logout
from studiosync.client.cli.project import sync


@click.group()
@click.version_option(package_name="studiosync")
def cli() -> None:
    """studiosync - keep a local project in sync with the studio."""


cli.add_command(sync)
cli.add_command(logout)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_project_dir",
    "get_projects_dir",
    "get_store_dir",
    "get_token_store",
    "sanitize_project_name",
]
