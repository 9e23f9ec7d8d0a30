"""Git versioning for project directories.

Each project directory is its own git repository. Saves become commits,
the log becomes the version list, and restoring a version rewrites the
working tree to match an old commit (the restore itself is then saved as
a new version by the caller).

Runs the ``git`` executable through asyncio subprocesses.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from adorable.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_GITIGNORE = """node_modules/
.angular/
dist/
.cache/
tmp/
.nx/
.DS_Store
"""

# Field / record separators for `git log --format`
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%an%x1f%ae%x1f%aI%x1f%s%x1e"

# Paths passed to one `git checkout <sha> -- ...` invocation
CHECKOUT_BATCH_SIZE = 200

_SHA_RE = re.compile(r"^[0-9a-fA-F]{4,64}$")


class GitError(Exception):
    """A git command failed."""
    pass


class UnknownRevisionError(GitError):
    """The requested sha is not a commit of the repository."""
    pass


class NoGitHistoryError(GitError):
    """The project has no repository or no commits yet."""
    pass


@dataclass
class CommitInfo:
    """One entry of a project's version history."""

    sha: str
    message: str
    author_name: str
    author_email: str
    date: datetime

    def to_dict(self) -> dict:
        return {
            "sha": self.sha,
            "message": self.message,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "date": self.date.isoformat(),
        }


class GitService:
    """Commit, list and restore versions of a project directory."""

    def __init__(
        self,
        author_name: str | None = None,
        author_email: str | None = None,
        timeout: float | None = None,
    ):
        self.author_name = author_name or settings.git_author_name
        self.author_email = author_email or settings.git_author_email
        self.timeout = timeout or settings.git_timeout_seconds

    async def _run(
        self,
        path: Path,
        *args: str,
        check: bool = True,
    ) -> tuple[int, str, str]:
        """Run a git command inside ``path``.

        Returns:
            (returncode, stdout, stderr)

        Raises:
            GitError: If git is missing, times out, or exits non-zero with ``check``
        """
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "LC_ALL": "C"}
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=str(path),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise GitError(f"git {args[0]} timed out after {self.timeout}s") from e

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if check and process.returncode != 0:
            raise GitError(f"git {args[0]} failed: {err.strip() or out.strip()}")
        return process.returncode, out, err

    async def is_repo_root(self, path: Path) -> bool:
        """True only if ``path`` is the top level of its own repository.

        A directory nested inside some other repository is not a root.
        """
        path = Path(path)
        if not path.is_dir():
            return False
        code, out, _ = await self._run(path, "rev-parse", "--show-toplevel", check=False)
        if code != 0 or not out.strip():
            return False
        return Path(out.strip()).resolve() == path.resolve()

    async def has_commits(self, path: Path) -> bool:
        code, _, _ = await self._run(path, "rev-parse", "--verify", "--quiet", "HEAD", check=False)
        return code == 0

    async def init_repo(self, path: Path) -> None:
        """Create the directory and make it a repository root if it isn't one."""
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        if await self.is_repo_root(path):
            return

        await self._run(path, "init")
        gitignore = path / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(DEFAULT_GITIGNORE, encoding="utf-8")
        await self._run(path, "config", "user.name", self.author_name)
        await self._run(path, "config", "user.email", self.author_email)
        logger.info(f"Initialized git repository at {path}")

    async def commit(self, path: Path, message: str) -> str | None:
        """Stage everything and commit.

        Returns:
            The new commit SHA, or None if the tree was unchanged
        """
        path = Path(path)
        await self.init_repo(path)
        await self._run(path, "add", "-A")

        _, status, _ = await self._run(path, "status", "--porcelain")
        if not status.strip():
            return None

        await self._run(
            path,
            "-c", f"user.name={self.author_name}",
            "-c", f"user.email={self.author_email}",
            "-c", "commit.gpgsign=false",
            "commit", "--quiet", "-m", message,
        )
        sha = await self.head_sha(path)
        logger.info(f"Committed {sha} in {path.name}: {message}")
        return sha

    async def log(self, path: Path, limit: int = 50) -> list[CommitInfo]:
        """Newest-first history; empty when there is no repository or no commits."""
        path = Path(path)
        if not await self.is_repo_root(path) or not await self.has_commits(path):
            return []

        _, out, _ = await self._run(path, "log", f"--max-count={limit}", f"--format={_LOG_FORMAT}")
        commits = []
        for record in out.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, author_name, author_email, date, message = record.split(_FIELD_SEP, 4)
            commits.append(
                CommitInfo(
                    sha=sha,
                    message=message,
                    author_name=author_name,
                    author_email=author_email,
                    date=datetime.fromisoformat(date),
                )
            )
        return commits

    async def head_sha(self, path: Path) -> str | None:
        """Current tip of the project's history, or None."""
        path = Path(path)
        if not await self.is_repo_root(path):
            return None
        code, out, _ = await self._run(path, "rev-parse", "--verify", "--quiet", "HEAD", check=False)
        return out.strip() if code == 0 and out.strip() else None

    async def _tree_files(self, path: Path, rev: str) -> list[str]:
        _, out, _ = await self._run(path, "ls-tree", "-r", "-z", "--name-only", rev)
        return [name for name in out.split("\0") if name]

    async def checkout(self, path: Path, sha: str) -> None:
        """Make the working tree match commit ``sha``.

        Files of the target commit are restored, and files tracked at HEAD
        that the target doesn't have are deleted. HEAD itself does not move.

        Raises:
            NoGitHistoryError: No repository root or no commits
            GitError: Unknown sha or a failing git command
        """
        path = Path(path)
        if not await self.is_repo_root(path) or not await self.has_commits(path):
            raise NoGitHistoryError(
                "No git history for this project. Save the project first to create a version."
            )

        if not _SHA_RE.match(sha or ""):
            raise UnknownRevisionError(f"Unknown version: {sha}")
        code, _, _ = await self._run(
            path, "rev-parse", "--verify", "--quiet", f"{sha}^{{commit}}", check=False
        )
        if code != 0:
            raise UnknownRevisionError(f"Unknown version: {sha}")

        current = await self._tree_files(path, "HEAD")
        target = await self._tree_files(path, sha)

        for start in range(0, len(target), CHECKOUT_BATCH_SIZE):
            batch = target[start:start + CHECKOUT_BATCH_SIZE]
            await self._run(path, "--literal-pathspecs", "checkout", sha, "--", *batch)

        target_set = set(target)
        root = path.resolve()
        for name in current:
            if name in target_set:
                continue
            stale = path / name
            if stale.is_file() or stale.is_symlink():
                stale.unlink()
                self._prune_empty_dirs(stale.parent, root)

        logger.info(f"Restored {path.name} to {sha}")

    @staticmethod
    def _prune_empty_dirs(directory: Path, root: Path) -> None:
        """Remove now-empty parent directories, stopping at the project root."""
        directory = directory.resolve()
        while directory != root and root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


__all__ = [
    "GitService",
    "CommitInfo",
    "GitError",
    "NoGitHistoryError",
    "UnknownRevisionError",
    "DEFAULT_GITIGNORE",
]
