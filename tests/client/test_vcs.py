"""Tests for the git adapter.

These run the real git binary against repositories in tmp_path.
"""

import shutil
from pathlib import Path

import pytest

from studiosync.client.vcs import (
    GitCommandError,
    GitRepository,
    PatchApplyError,
    run_git,
)
from studiosync.core.types import ChangeStatus

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class TestRunGit:
    """Tests for run_git."""

    def test_failure_raises(self, tmp_path: Path, git) -> None:  # type: ignore[no-untyped-def]
        """A non-zero exit should raise GitCommandError."""
        with pytest.raises(GitCommandError) as exc_info:
            run_git(["rev-parse", "HEAD"], cwd=tmp_path)

        assert exc_info.value.returncode != 0
        assert exc_info.value.args_list == ["rev-parse", "HEAD"]


class TestGitRepository:
    """Tests for GitRepository."""

    def test_exists(self, tmp_path: Path, upstream: Path) -> None:
        """exists should reflect the presence of .git."""
        assert GitRepository(upstream).exists
        assert not GitRepository(tmp_path / "nowhere").exists

    def test_clone(self, tmp_path: Path, upstream: Path) -> None:
        """clone should check out the master branch."""
        repo = GitRepository.clone(upstream, tmp_path / "work")

        assert repo.exists
        assert (tmp_path / "work" / "src" / "main" / "webapp" / "app.js").exists()

    def test_head_commit_id(self, upstream: Path, git) -> None:  # type: ignore[no-untyped-def]
        """head_commit_id should match rev-parse."""
        assert GitRepository(upstream).head_commit_id() == git("rev-parse", "HEAD", cwd=upstream)

    def test_has_commit(self, upstream: Path, second_commit) -> None:  # type: ignore[no-untyped-def]
        """HEAD~1 only exists once there are two commits."""
        repo = GitRepository(upstream)
        assert repo.has_commit("HEAD")
        assert not repo.has_commit("HEAD~1")

        second_commit()

        assert repo.has_commit("HEAD~1")

    def test_restore_working_tree(self, upstream: Path) -> None:
        """Tracked files should be restored to HEAD content."""
        app = upstream / "src" / "main" / "webapp" / "app.js"
        app.write_text("local edit\n")

        GitRepository(upstream).restore_working_tree()

        assert app.read_text() == "console.log('v1');\n"

    def test_clean_keeps_output(self, upstream: Path) -> None:
        """Untracked files are removed except under output/."""
        (upstream / "scratch.txt").write_text("junk")
        (upstream / "output" / "logs").mkdir(parents=True)
        (upstream / "output" / "logs" / "sync.log").write_text("log")

        GitRepository(upstream).clean_except_output()

        assert not (upstream / "scratch.txt").exists()
        assert (upstream / "output" / "logs" / "sync.log").exists()

    def test_fetch_and_reset_from_bundle(  # type: ignore[no-untyped-def]
        self, tmp_path: Path, upstream: Path, second_commit, git
    ) -> None:
        """Fetching master from a bundle and resetting should match upstream."""
        repo = GitRepository.clone(upstream, tmp_path / "work")
        second_commit()
        bundle = tmp_path / "remoteChanges.bundle"
        git("bundle", "create", str(bundle), "master", cwd=upstream)
        (repo.work_tree / "src" / "main" / "webapp" / "app.js").write_text("local\n")

        repo.clean_except_output()
        repo.fetch_ref(bundle)
        repo.reset_hard_to_fetch_head()

        assert repo.head_commit_id() == git("rev-parse", "HEAD", cwd=upstream)
        assert (repo.work_tree / "src" / "main" / "webapp" / "app.js").read_text() == (
            "console.log('v2');\n"
        )
        assert not (repo.work_tree / "README.md").exists()

    def test_apply_patch(self, tmp_path: Path, upstream: Path, git) -> None:  # type: ignore[no-untyped-def]
        """A diff of uncommitted changes should apply cleanly."""
        repo = GitRepository.clone(upstream, tmp_path / "work")
        app = upstream / "src" / "main" / "webapp" / "app.js"
        app.write_text("console.log('draft');\n")
        patch_file = tmp_path / "patchFile.patch"
        patch_file.write_text(git("diff", cwd=upstream) + "\n")

        repo.apply_patch(patch_file)

        assert (repo.work_tree / "src" / "main" / "webapp" / "app.js").read_text() == (
            "console.log('draft');\n"
        )

    def test_apply_empty_patch(self, tmp_path: Path, upstream: Path) -> None:
        """An empty patch is accepted."""
        patch_file = tmp_path / "patchFile.patch"
        patch_file.write_text("")

        GitRepository(upstream).apply_patch(patch_file)

    def test_apply_bad_patch(self, tmp_path: Path, upstream: Path) -> None:
        """A patch that does not apply raises PatchApplyError."""
        patch_file = tmp_path / "patchFile.patch"
        patch_file.write_text(
            "diff --git a/missing.txt b/missing.txt\n"
            "--- a/missing.txt\n"
            "+++ b/missing.txt\n"
            "@@ -1 +1 @@\n"
            "-old\n"
            "+new\n"
        )

        with pytest.raises(PatchApplyError):
            GitRepository(upstream).apply_patch(patch_file)

    def test_diff_name_status(self, upstream: Path, second_commit) -> None:  # type: ignore[no-untyped-def]
        """Changes between the last two commits are reported per file."""
        second_commit()

        records = GitRepository(upstream).diff_name_status("HEAD~1", "HEAD")

        by_path = {r.file_path: r.status for r in records}
        assert by_path == {
            "README.md": ChangeStatus.DELETED,
            "app.js": ChangeStatus.MODIFIED,
            "pages/Main.js": ChangeStatus.ADDED,
        }
