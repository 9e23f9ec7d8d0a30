"""GitHub repository pull client.

Fetches a branch's full file tree through the GitHub REST API and returns
it in the nested project file-tree format used everywhere else:

    {"src": {"directory": {"main.ts": {"file": {"contents": "..."}}}},
     "logo.png": {"file": {"contents": "<base64>", "encoding": "base64"}}}
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from adorable.core.config import settings
from adorable.services.project_fs import is_binary_path

logger = logging.getLogger(__name__)

SKIPPED_PREFIXES = ("node_modules/", "dist/", ".git/")
SKIPPED_NAMES = (".DS_Store",)


class GitHubSyncError(Exception):
    """GitHub API request failed or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GitFile:
    """One file of a flattened tree."""

    path: str
    content: str
    encoding: str = "utf-8"  # or "base64"


@dataclass
class PullResult:
    """Files and head commit of a pulled branch."""

    files: dict[str, Any] = field(default_factory=dict)
    commit_sha: str = ""


def flatten_files(files: dict[str, Any], prefix: str = "") -> list[GitFile]:
    """Turn a nested file tree into a flat list of paths."""
    result: list[GitFile] = []
    for name, node in files.items():
        path = f"{prefix}/{name}" if prefix else name
        if "file" in node:
            file_node = node["file"]
            encoding = "base64" if file_node.get("encoding") == "base64" else "utf-8"
            result.append(GitFile(path=path, content=file_node.get("contents", ""), encoding=encoding))
        elif "directory" in node:
            result.extend(flatten_files(node["directory"], path))
    return result


def unflatten_files(files: list[GitFile]) -> dict[str, Any]:
    """Build a nested file tree from a flat list of paths."""
    root: dict[str, Any] = {}
    for git_file in files:
        *dirs, name = git_file.path.split("/")
        current = root
        for part in dirs:
            current = current.setdefault(part, {"directory": {}})["directory"]
        node: dict[str, Any] = {"contents": git_file.content}
        if git_file.encoding == "base64":
            node["encoding"] = "base64"
        current[name] = {"file": node}
    return root


def _skipped(path: str) -> bool:
    if path.startswith(SKIPPED_PREFIXES):
        return True
    return path.rsplit("/", 1)[-1] in SKIPPED_NAMES


class GitHubSyncService:
    """Pulls repository contents from GitHub."""

    def __init__(
        self,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base = (api_base or settings.github_api_base).rstrip("/")
        self.timeout = timeout or settings.github_timeout_seconds
        self._transport = transport

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    @staticmethod
    async def _get_json(client: httpx.AsyncClient, url: str, what: str) -> Any:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise GitHubSyncError(f"Failed to get {what}: {e}") from e
        if response.status_code != 200:
            raise GitHubSyncError(
                f"Failed to get {what}: {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()

    async def pull_from_github(self, token: str, full_name: str, branch: str) -> PullResult:
        """Download every file of ``branch`` in ``full_name``.

        Args:
            token: GitHub access token of the project owner
            full_name: "owner/repo"
            branch: Branch name

        Returns:
            PullResult with the nested file tree and the branch head SHA

        Raises:
            GitHubSyncError: If the tree or the branch ref can't be fetched
        """
        async with self._client(token) as client:
            tree = await self._get_json(
                client, f"/repos/{full_name}/git/trees/{branch}?recursive=1", "tree"
            )
            if tree.get("truncated"):
                logger.warning(f"Tree of {full_name}@{branch} is truncated; some files are missing")

            ref = await self._get_json(
                client, f"/repos/{full_name}/git/refs/heads/{branch}", "branch ref"
            )
            try:
                commit_sha = ref["object"]["sha"]
            except (KeyError, TypeError) as e:
                raise GitHubSyncError(f"Unexpected ref payload for {full_name}@{branch}") from e

            git_files: list[GitFile] = []
            for item in tree.get("tree", []):
                if item.get("type") != "blob" or _skipped(item["path"]):
                    continue
                git_file = await self._fetch_blob(client, full_name, item)
                if git_file is not None:
                    git_files.append(git_file)

        logger.info(f"Pulled {len(git_files)} files from {full_name}@{branch} ({commit_sha[:7]})")
        return PullResult(files=unflatten_files(git_files), commit_sha=commit_sha)

    async def _fetch_blob(
        self,
        client: httpx.AsyncClient,
        full_name: str,
        item: dict[str, Any],
    ) -> GitFile | None:
        path = item["path"]
        try:
            response = await client.get(f"/repos/{full_name}/git/blobs/{item['sha']}")
        except httpx.HTTPError as e:
            raise GitHubSyncError(f"Failed to get blob {path}: {e}") from e
        if response.status_code != 200:
            logger.warning(f"Skipping {path}: blob fetch returned {response.status_code}")
            return None

        blob = response.json()
        content = blob.get("content", "")
        if blob.get("encoding") != "base64":
            return GitFile(path=path, content=content)

        content = content.replace("\n", "")
        if is_binary_path(path):
            return GitFile(path=path, content=content, encoding="base64")
        decoded = base64.b64decode(content).decode("utf-8", errors="replace")
        return GitFile(path=path, content=decoded)


__all__ = [
    "GitHubSyncService",
    "GitHubSyncError",
    "GitFile",
    "PullResult",
    "flatten_files",
    "unflatten_files",
]
