"""Project files on disk.

Each project lives in ``<projects_dir>/<project id>`` and is exchanged with
clients as a nested file tree::

    {"name": {"file": {"contents": str, "encoding"?: "base64"}}
     | {"directory": {...}}}

Binary files travel base64-encoded.
"""

from __future__ import annotations

import base64
import binascii
import logging
import shutil
from pathlib import Path, PurePosixPath
from typing import Any

from adorable.core.config import settings

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset(
    {"node_modules", ".git", ".angular", "dist", ".cache", "tmp", ".nx", ".adorable"}
)
SKIPPED_FILES = frozenset({".DS_Store"})
# Survive a replacing write unless the new tree overwrites them
KEPT_ON_REPLACE = frozenset({".gitignore"})
BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".svg", ".pdf",
        ".eot", ".ttf", ".woff", ".woff2", ".mp3", ".mp4", ".zip", ".tar", ".gz",
    }
)


class ProjectFsError(Exception):
    """Invalid file tree or unsafe path."""
    pass


def is_binary_path(path: str) -> bool:
    return PurePosixPath(path).suffix.lower() in BINARY_EXTENSIONS


class ProjectFsService:
    """Reads and writes project file trees."""

    def __init__(self, projects_dir: Path | str | None = None):
        self.projects_dir = Path(projects_dir) if projects_dir else settings.effective_projects_dir

    def get_project_path(self, project_id: str) -> Path:
        name = str(project_id)
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ProjectFsError(f"Invalid project id: {project_id!r}")
        return self.projects_dir / name

    def exists(self, project_id: str) -> bool:
        return self.get_project_path(project_id).is_dir()

    def write_project_files(
        self,
        project_id: str,
        files: dict[str, Any],
        replace: bool = False,
    ) -> Path:
        """Write a file tree into the project directory.

        Args:
            project_id: Project UUID
            files: Nested file tree
            replace: Remove everything not in ``files`` first (git metadata,
                .gitignore and build/cache directories are kept)

        Returns:
            The project directory

        Raises:
            ProjectFsError: If a name would escape the project directory or a
                node is malformed (nothing is written or removed then)
        """
        root = self.get_project_path(project_id)
        entries = self._decode_tree(files, PurePosixPath())
        root.mkdir(parents=True, exist_ok=True)
        if replace:
            self._clear(root)
        for relative, data in entries:
            target = root.joinpath(*relative.parts)
            if data is None:
                target.mkdir(parents=True, exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
        return root

    def _decode_tree(self, files: Any, base: PurePosixPath) -> list[tuple[PurePosixPath, bytes | None]]:
        """Flatten and decode a file tree; directories map to ``None``.

        Everything is checked here so a bad node fails before the disk is touched.
        """
        if not isinstance(files, dict):
            raise ProjectFsError("File tree must be an object")
        entries: list[tuple[PurePosixPath, bytes | None]] = []
        for name, node in files.items():
            if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
                raise ProjectFsError(f"Invalid file name: {name!r}")
            if not isinstance(node, dict):
                raise ProjectFsError(f"Invalid node for {name!r}")
            path = base / name
            if "directory" in node:
                entries.append((path, None))
                entries.extend(self._decode_tree(node["directory"], path))
            elif "file" in node:
                entries.append((path, self._decode_file(name, node["file"])))
            else:
                raise ProjectFsError(f"Node {name!r} is neither a file nor a directory")
        return [
            (path, data)
            for path, data in entries
            if not any(part in SKIPPED_FILES or part == ".adorable" for part in path.parts)
        ]

    @staticmethod
    def _decode_file(name: str, file: Any) -> bytes:
        if not isinstance(file, dict):
            raise ProjectFsError(f"Invalid file node for {name!r}")
        contents = file.get("contents", "")
        if not isinstance(contents, str):
            raise ProjectFsError(f"Contents of {name!r} must be a string")
        if file.get("encoding") == "base64":
            try:
                return base64.b64decode(contents, validate=True)
            except binascii.Error as e:
                raise ProjectFsError(f"Invalid base64 contents for {name!r}") from e
        return contents.encode("utf-8")

    @staticmethod
    def _clear(root: Path) -> None:
        for entry in root.iterdir():
            if entry.name in EXCLUDED_DIRS or entry.name in KEPT_ON_REPLACE:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

    def read_project_files(self, project_id: str) -> dict[str, Any]:
        """Read the project directory back into a file tree."""
        return self._read_tree(self.get_project_path(project_id))

    def _read_tree(self, directory: Path) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if not directory.is_dir():
            return result

        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name in EXCLUDED_DIRS or entry.name in SKIPPED_FILES:
                continue
            if entry.is_dir():
                result[entry.name] = {"directory": self._read_tree(entry)}
            elif entry.is_file():
                if is_binary_path(entry.name):
                    result[entry.name] = {
                        "file": {
                            "contents": base64.b64encode(entry.read_bytes()).decode("ascii"),
                            "encoding": "base64",
                        }
                    }
                else:
                    result[entry.name] = {
                        "file": {"contents": entry.read_text(encoding="utf-8", errors="replace")}
                    }
        return result

    def delete_project_files(self, project_id: str) -> None:
        path = self.get_project_path(project_id)
        if path.exists():
            shutil.rmtree(path, ignore_errors=True)
            logger.info(f"Deleted files of project {project_id}")


__all__ = [
    "ProjectFsService",
    "ProjectFsError",
    "is_binary_path",
    "EXCLUDED_DIRS",
    "BINARY_EXTENSIONS",
]
