"""Project sync command for the studiosync CLI.

Commands:
- sync: Download a studio project and keep it in sync with the live preview
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

import click

from studiosync.client.api import APIError, AuthenticationError
from studiosync.client.auth import Authenticator
from studiosync.client.cli.config import (
    CODEBASE_ENV_VAR,
    get_project_dir,
    get_store_dir,
    get_token_store,
)
from studiosync.client.identity import ProjectNotFoundError, fetch_display_name
from studiosync.client.store import StoreError
from studiosync.client.sync import (
    DEFAULT_WATCH_INTERVAL,
    ChangeWatcher,
    PlatformWatcher,
    ProjectSyncService,
    get_log_directory,
)
from studiosync.core.types import ChangeRecord, ChangeStatus

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "sync.log"

CHANGE_COLORS = {
    ChangeStatus.ADDED: "green",
    ChangeStatus.DELETED: "red",
    ChangeStatus.MODIFIED: "yellow",
    ChangeStatus.OTHER: "cyan",
}


class ClickEchoHandler(logging.Handler):
    """Logging handler writing through click.echo.

    Warnings and errors go to stderr. The stream is looked up at emit time,
    so output follows whatever click is currently writing to.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            click.echo(msg, err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool) -> None:
    """Configure console logging for the studiosync logger."""
    root_logger = logging.getLogger("studiosync")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console = ClickEchoHandler()
    console.setFormatter(logging.Formatter("%(message)s"))
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.addHandler(console)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def attach_log_file(log_dir: Path) -> Path | None:
    """Also write full logs to ``log_dir/sync.log``.

    Returns:
        Path of the log file, or None if the directory does not exist.
    """
    if not log_dir.is_dir():
        return None
    log_path = log_dir / LOG_FILE_NAME
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    logging.getLogger("studiosync").addHandler(file_handler)
    return log_path


def format_changes(changes: list[ChangeRecord]) -> str:
    """Render changed files, one per line, colored by status."""
    lines = []
    for change in changes:
        label = f"{change.code}:{change.file_path}"
        lines.append("\t" + click.style(label, fg=CHANGE_COLORS[change.status]))
    return "Files changed: \n" + "\n".join(lines)


def print_changes(changes: list[ChangeRecord]) -> None:
    """ProjectSyncService callback showing what a pull changed."""
    if changes:
        click.echo(format_changes(changes))


def run_rebuild_command(command: str, cwd: Path) -> bool:
    """Run the user's rebuild command in the working tree.

    Returns:
        True if the command exited with status 0.
    """
    logger.info("Executing: %s", command)
    result = subprocess.run(command, shell=True, cwd=cwd, check=False)
    if result.returncode != 0:
        logger.warning("Rebuild command exited with status %d", result.returncode)
        return False
    return True


def make_pull_and_rebuild(
    pull: Callable[[], bool],
    rebuild: Callable[[], object] | None,
) -> Callable[[], bool]:
    """Combine a pull function with the rebuild step for the watcher.

    The rebuild only runs after a successful pull.
    """

    def pull_and_rebuild() -> bool:
        start = time.monotonic()
        if not pull():
            click.echo(
                click.style("Pull failed, retrying on the next change.", fg="yellow"),
                err=True,
            )
            return False
        click.echo(f"Sync Time: {time.monotonic() - start:.2f}s.")
        if rebuild is not None:
            rebuild()
            click.echo(f"Total Time: {time.monotonic() - start:.2f}s.")
        return True

    return pull_and_rebuild


def _exit_on_store_error(error: StoreError) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    click.echo(f"Delete {get_store_dir()} to start over.")
    sys.exit(1)


def _attach_project_log(project_dir: Path) -> Path | None:
    log_path = attach_log_file(get_log_directory(project_dir))
    if log_path:
        click.echo("Full log details can be found in: " + click.style(str(log_path), fg="blue"))
    return log_path


@click.command()
@click.argument("preview_url")
@click.option(
    "--project-name",
    default=None,
    help="Studio project name (default: read from the preview).",
)
@click.option(
    "--dest",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Working tree location (default: ~/.studiosync/projects/<name>).",
)
@click.option("--token", default=None, help="Studio auth token.")
@click.option(
    "--login",
    "use_password",
    is_flag=True,
    help="Log in with username and password instead of a token.",
)
@click.option(
    "--clean",
    is_flag=True,
    help="Forget the stored credential and remove the existing working tree.",
)
@click.option(
    "--watch/--no-watch",
    default=True,
    help="Keep pulling whenever the live preview changes.",
)
@click.option(
    "--interval",
    type=float,
    default=DEFAULT_WATCH_INTERVAL,
    show_default=True,
    help="Seconds between two preview checks.",
)
@click.option(
    "--on-change",
    "on_change_cmd",
    default=None,
    help="Shell command run in the working tree after every successful pull.",
)
@click.option(
    "--platform-codebase",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=CODEBASE_ENV_VAR,
    default=None,
    help="Local frontend codebase whose runtime builds trigger a rebuild.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed logs.")
def sync(
    preview_url: str,
    project_name: str | None,
    dest: Path | None,
    token: str | None,
    use_password: bool,
    clean: bool,
    watch: bool,
    interval: float,
    on_change_cmd: str | None,
    platform_codebase: Path | None,
    verbose: bool,
) -> None:
    """Download a studio project and keep it in sync with its preview.

    PREVIEW_URL may carry the auth token after a '#'.
    """
    setup_logging(verbose)

    preview_url, _, url_token = preview_url.partition("#")
    preview_url = preview_url.rstrip("/")
    token = token or url_token or None

    token_store = get_token_store()
    if clean:
        try:
            token_store.clear()
        except StoreError as e:
            _exit_on_store_error(e)

    if not project_name:
        try:
            project_name = fetch_display_name(preview_url)
        except APIError as e:
            click.echo(f"Error: {e}", err=True)
            click.echo("Make sure the preview is running, or pass --project-name.")
            sys.exit(1)

    project_dir = dest or get_project_dir(project_name)
    if clean and project_dir.exists():
        shutil.rmtree(project_dir)
        click.echo(f"Removed {project_dir}")

    click.echo(f"Syncing '{project_name}' from {preview_url}...")

    service = ProjectSyncService(Authenticator(token_store), on_changes=print_changes)
    try:
        pull = service.setup_project(
            preview_url,
            project_name,
            project_dir,
            auth_token=token,
            use_password=use_password,
        )
    except StoreError as e:
        service.close()
        _exit_on_store_error(e)
    except (AuthenticationError, ProjectNotFoundError, ValueError) as e:
        service.close()
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    log_path = _attach_project_log(project_dir)
    click.echo(f"Working tree: {project_dir}")

    def pull_and_log() -> bool:
        nonlocal log_path
        pulled = pull()
        # A retried initial download creates the log directory
        if pulled and log_path is None:
            log_path = _attach_project_log(project_dir)
        return pulled

    rebuild_lock = threading.Lock()

    def rebuild() -> None:
        if on_change_cmd:
            with rebuild_lock:
                run_rebuild_command(on_change_cmd, project_dir)

    if not watch:
        downloaded = service.is_downloaded(project_dir)
        if downloaded:
            rebuild()
        service.close()
        if not downloaded:
            sys.exit(1)
        return

    platform_watcher = None
    if platform_codebase and on_change_cmd:
        platform_watcher = PlatformWatcher(platform_codebase, on_change=rebuild)
        platform_watcher.start()

    watcher = ChangeWatcher(
        preview_url,
        on_change=make_pull_and_rebuild(pull_and_log, rebuild if on_change_cmd else None),
        interval=interval,
    )
    click.echo("\nWatching for changes... (Ctrl+C to stop)\n")
    try:
        watcher.run()
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        watcher.close()
        if platform_watcher:
            platform_watcher.stop()
        service.close()
