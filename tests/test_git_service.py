"""Tests for GitService against real repositories in a temp directory."""

import shutil

import pytest

from adorable.services.git_service import (
    DEFAULT_GITIGNORE,
    NoGitHistoryError,
    UnknownRevisionError,
)


pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def _write(root, files: dict[str, str]) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


class TestRepository:
    async def test_init_writes_gitignore(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        await git.init_repo(project)
        assert await git.is_repo_root(project)
        assert (project / ".gitignore").read_text() == DEFAULT_GITIGNORE

    async def test_init_keeps_existing_gitignore(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        project.mkdir()
        (project / ".gitignore").write_text("custom/\n")
        await git.init_repo(project)
        assert (project / ".gitignore").read_text() == "custom/\n"

    async def test_nested_directory_is_not_a_root(self, git, tmp_path) -> None:
        await git.init_repo(tmp_path)
        nested = tmp_path / "projects" / "p1"
        nested.mkdir(parents=True)
        assert not await git.is_repo_root(nested)

        # Committing inside it creates its own repository instead of using the outer one
        (nested / "index.html").write_text("<h1>hi</h1>")
        sha = await git.commit(nested, "First")
        assert sha
        assert await git.is_repo_root(nested)
        assert [c.sha for c in await git.log(nested)] == [sha]

    async def test_missing_directory(self, git, tmp_path) -> None:
        assert not await git.is_repo_root(tmp_path / "nope")
        assert await git.log(tmp_path / "nope") == []
        assert await git.head_sha(tmp_path / "nope") is None


class TestCommitAndLog:
    async def test_commit_and_log(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"a.txt": "one"})
        first = await git.commit(project, "Initial version")
        _write(project, {"a.txt": "two"})
        second = await git.commit(project, "Save project")

        log = await git.log(project)
        assert [c.sha for c in log] == [second, first]
        assert [c.message for c in log] == ["Save project", "Initial version"]
        assert log[0].author_name == "Test Bot"
        assert log[0].author_email == "bot@example.com"
        assert log[0].to_dict()["date"]
        assert await git.head_sha(project) == second

    async def test_no_empty_commits(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"a.txt": "one"})
        assert await git.commit(project, "First")
        assert await git.commit(project, "Nothing changed") is None
        assert len(await git.log(project)) == 1

    async def test_log_limit(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        for i in range(3):
            _write(project, {"a.txt": str(i)})
            await git.commit(project, f"v{i}")
        assert [c.message for c in await git.log(project, limit=2)] == ["v2", "v1"]

    async def test_message_with_separators(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"a.txt": "x"})
        await git.commit(project, "Fix: a | b ; c")
        assert (await git.log(project))[0].message == "Fix: a | b ; c"

    async def test_gitignored_paths_are_not_versioned(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"src/app.ts": "x", "node_modules/dep/index.js": "y"})
        await git.commit(project, "First")
        _write(project, {"node_modules/dep/index.js": "changed"})
        assert await git.commit(project, "Only ignored changes") is None


class TestCheckout:
    async def test_restore_removes_added_files(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"index.html": "v1", "src/main.ts": "main v1"})
        first = await git.commit(project, "v1")

        _write(project, {"index.html": "v2", "src/extra/new.ts": "new", "about.html": "about"})
        (project / "src" / "main.ts").unlink()
        await git.commit(project, "v2")

        await git.checkout(project, first)

        assert (project / "index.html").read_text() == "v1"
        assert (project / "src" / "main.ts").read_text() == "main v1"
        assert not (project / "about.html").exists()
        assert not (project / "src" / "extra").exists()
        assert (project / ".gitignore").exists()

        # HEAD doesn't move; saving the restored tree makes a new version
        restored = await git.commit(project, "Restore version")
        log = await git.log(project)
        assert log[0].sha == restored
        assert len(log) == 3

    async def test_checkout_short_sha(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        _write(project, {"a.txt": "one"})
        first = await git.commit(project, "v1")
        _write(project, {"a.txt": "two"})
        await git.commit(project, "v2")
        await git.checkout(project, first[:7])
        assert (project / "a.txt").read_text() == "one"

    async def test_checkout_without_history(self, git, tmp_path) -> None:
        project = tmp_path / "p1"
        project.mkdir()
        with pytest.raises(NoGitHistoryError):
            await git.checkout(project, "abc1234")

        await git.init_repo(project)
        with pytest.raises(NoGitHistoryError):
            await git.checkout(project, "abc1234")

    @pytest.mark.parametrize("sha", ["0" * 40, "not-a-sha", "--help", "HEAD~1"])
    async def test_checkout_unknown_revision(self, git, tmp_path, sha) -> None:
        project = tmp_path / "p1"
        _write(project, {"a.txt": "one"})
        await git.commit(project, "v1")
        with pytest.raises(UnknownRevisionError):
            await git.checkout(project, sha)
        assert (project / "a.txt").read_text() == "one"
