"""Shared fixtures for tests that drive a real git binary."""

import os
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

GitRunner = Callable[..., str]


@pytest.fixture
def git(monkeypatch: pytest.MonkeyPatch) -> GitRunner:
    """Run git with an isolated configuration and a fixed identity."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for prefix in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{prefix}_NAME", "Studio Test")
        monkeypatch.setenv(f"{prefix}_EMAIL", "studio@example.com")

    def run(*args: str, cwd: Path | None = None) -> str:
        result = subprocess.run(
            ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
        )
        return result.stdout.strip()

    return run


@pytest.fixture
def upstream(tmp_path: Path, git: GitRunner) -> Path:
    """A repository on ``master`` with one commit of a small webapp."""
    repo = tmp_path / "upstream"
    webapp = repo / "src" / "main" / "webapp"
    webapp.mkdir(parents=True)
    (webapp / "app.js").write_text("console.log('v1');\n")
    (repo / "README.md").write_text("# Foo\n")
    git("init", "-q", "-b", "master", str(repo))
    git("add", ".", cwd=repo)
    git("commit", "-q", "-m", "initial", cwd=repo)
    return repo


@pytest.fixture
def second_commit(upstream: Path, git: GitRunner) -> Callable[[], None]:
    """Add a commit touching one file of each change kind."""

    def commit() -> None:
        webapp = upstream / "src" / "main" / "webapp"
        (webapp / "app.js").write_text("console.log('v2');\n")
        (webapp / "pages").mkdir(exist_ok=True)
        (webapp / "pages" / "Main.js").write_text("export default {};\n")
        (upstream / "README.md").unlink()
        git("add", "-A", cwd=upstream)
        git("commit", "-q", "-m", "second", cwd=upstream)

    return commit
