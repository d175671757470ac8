"""Git adapter for the local working tree.

This module provides:
- GitRepository: runs the git subcommands the sync protocols need
- GitCommandError / PatchApplyError: raised on any non-zero exit

Every call blocks until git exits. Output lines are logged at DEBUG.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from studiosync.core.types import ChangeRecord

logger = logging.getLogger(__name__)

GIT_DIR_NAME = ".git"
OUTPUT_DIR_NAME = "output"
DEFAULT_BRANCH = "master"


class GitCommandError(Exception):
    """A git subcommand exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        message = f"git {' '.join(args)} exited with status {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class PatchApplyError(GitCommandError):
    """``git apply`` rejected a patch."""


def run_git(args: list[str], cwd: Path | None = None) -> list[str]:
    """Run a git command and return its stdout lines.

    Raises:
        GitCommandError: If git exits with a non-zero status or is missing.
    """
    logger.debug("Executing: git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise GitCommandError(args, -1, str(e)) from e

    for line in result.stdout.splitlines():
        if line:
            logger.debug("git: %s", line)
    for line in result.stderr.splitlines():
        if line:
            logger.debug("git (stderr): %s", line)

    if result.returncode != 0:
        raise GitCommandError(args, result.returncode, result.stderr)
    return result.stdout.splitlines()


class GitRepository:
    """A git working tree on local disk."""

    def __init__(self, work_tree: Path) -> None:
        self._work_tree = Path(work_tree)

    @property
    def work_tree(self) -> Path:
        """Root of the working tree."""
        return self._work_tree

    @property
    def git_dir(self) -> Path:
        """The ``.git`` metadata directory."""
        return self._work_tree / GIT_DIR_NAME

    @property
    def exists(self) -> bool:
        """Whether a repository is present in the working tree."""
        return self.git_dir.is_dir()

    def _git(self, *args: str) -> list[str]:
        return run_git(list(args), cwd=self._work_tree)

    @classmethod
    def clone(
        cls, source: Path, dest: Path, branch: str = DEFAULT_BRANCH
    ) -> GitRepository:
        """Clone ``source`` into ``dest`` and return the new repository."""
        run_git(["clone", "-b", branch, str(source), str(dest)])
        return cls(dest)

    def head_commit_id(self) -> str:
        """Commit id of HEAD."""
        lines = self._git("rev-parse", "HEAD")
        if not lines:
            raise GitCommandError(["rev-parse", "HEAD"], 0, "no output")
        return lines[0].strip()

    def has_commit(self, rev: str) -> bool:
        """Whether ``rev`` resolves to a commit."""
        try:
            self._git("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}")
        except GitCommandError:
            return False
        return True

    def restore_working_tree(self) -> None:
        """Restore all tracked files to their HEAD content."""
        self._git("restore", ".")

    def unset_bare(self) -> None:
        """Turn a repository unpacked from a bare bundle into a normal one."""
        self._git("config", "--local", "--unset", "core.bare")

    def clean_except_output(self) -> None:
        """Remove untracked files and directories, keeping ``output/``."""
        self._git("clean", "-fd", "-e", OUTPUT_DIR_NAME)

    def fetch_ref(self, bundle: Path | str, ref: str = f"refs/heads/{DEFAULT_BRANCH}") -> None:
        """Fetch ``ref`` from a bundle file (or any fetchable URL)."""
        self._git("fetch", str(bundle), ref)

    def reset_hard_to_fetch_head(self) -> None:
        """Hard-reset the working tree to FETCH_HEAD."""
        self._git("reset", "--hard", "FETCH_HEAD")

    def apply_patch(self, patch_file: Path) -> None:
        """Apply a unified diff to the working tree.

        Raises:
            PatchApplyError: If git rejects the patch.
        """
        try:
            self._git("apply", "--allow-empty", "--ignore-space-change", str(patch_file))
        except GitCommandError as e:
            raise PatchApplyError(e.args_list, e.returncode, e.stderr) from e

    def diff_name_status(self, rev_a: str, rev_b: str) -> list[ChangeRecord]:
        """Files changed between two revisions."""
        records = []
        for line in self._git("diff", "--name-status", rev_a, rev_b):
            record = ChangeRecord.from_diff_line(line)
            if record is not None:
                records.append(record)
        return records
