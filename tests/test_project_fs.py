"""Tests for ProjectFsService."""

import base64

import pytest

from adorable.services.project_fs import ProjectFsError, is_binary_path


class TestProjectFs:
    def test_write_and_read_tree(self, fs) -> None:
        png = base64.b64encode(b"\x89PNG\r\n\x1a\n\x00\x01").decode()
        tree = {
            "index.html": {"file": {"contents": "<h1>hi</h1>"}},
            "assets": {"directory": {"logo.png": {"file": {"contents": png, "encoding": "base64"}}}},
        }
        path = fs.write_project_files("p1", tree)
        assert (path / "assets" / "logo.png").read_bytes() == b"\x89PNG\r\n\x1a\n\x00\x01"
        assert fs.read_project_files("p1") == tree

    def test_read_skips_build_and_vcs_dirs(self, fs) -> None:
        path = fs.write_project_files("p1", {"a.txt": {"file": {"contents": "a"}}})
        for name in ("node_modules", ".git", "dist", ".angular"):
            (path / name).mkdir()
            (path / name / "x.js").write_text("x")
        (path / ".DS_Store").write_bytes(b"\x00")
        assert set(fs.read_project_files("p1")) == {"a.txt"}

    def test_replace_removes_stale_files(self, fs) -> None:
        path = fs.write_project_files(
            "p1",
            {"old.txt": {"file": {"contents": "old"}}, "keep": {"directory": {}}},
        )
        (path / ".gitignore").write_text("node_modules/\n")
        (path / "node_modules").mkdir()

        fs.write_project_files("p1", {"new.txt": {"file": {"contents": "new"}}}, replace=True)

        assert not (path / "old.txt").exists()
        assert not (path / "keep").exists()
        assert (path / "new.txt").read_text() == "new"
        assert (path / ".gitignore").exists()
        assert (path / "node_modules").is_dir()

    def test_merge_write_keeps_files(self, fs) -> None:
        fs.write_project_files("p1", {"a.txt": {"file": {"contents": "a"}}})
        fs.write_project_files("p1", {"b.txt": {"file": {"contents": "b"}}})
        assert set(fs.read_project_files("p1")) == {"a.txt", "b.txt"}

    @pytest.mark.parametrize(
        "tree",
        [
            {"..": {"directory": {}}},
            {"a/b.txt": {"file": {"contents": ""}}},
            {"x": {"neither": {}}},
            {"x": "not a node"},
            ["not", "a", "dict"],
        ],
    )
    def test_rejects_unsafe_trees(self, fs, projects_dir, tree) -> None:
        with pytest.raises(ProjectFsError):
            fs.write_project_files("p1", tree)
        assert not (projects_dir / "p1").exists()

    @pytest.mark.parametrize(
        "node",
        [
            {"file": {"contents": 123}},
            {"file": {"contents": None}},
            {"file": {"contents": "abc", "encoding": "base64"}},
            {"file": {"contents": "not base64!", "encoding": "base64"}},
        ],
    )
    def test_rejects_bad_contents(self, fs, projects_dir, node) -> None:
        with pytest.raises(ProjectFsError):
            fs.write_project_files("p1", {"logo.png": node})
        assert not (projects_dir / "p1").exists()

    def test_failed_replace_leaves_files_alone(self, fs) -> None:
        path = fs.write_project_files(
            "p1",
            {"index.html": {"file": {"contents": "<h1>hi</h1>"}}, "src": {"directory": {}}},
        )
        bad = {
            "new.txt": {"file": {"contents": "new"}},
            "logo.png": {"file": {"contents": "abc", "encoding": "base64"}},
        }
        with pytest.raises(ProjectFsError):
            fs.write_project_files("p1", bad, replace=True)

        assert (path / "index.html").read_text() == "<h1>hi</h1>"
        assert (path / "src").is_dir()
        assert not (path / "new.txt").exists()

    def test_skipped_names_not_written(self, fs) -> None:
        path = fs.write_project_files(
            "p1",
            {".DS_Store": {"file": {"contents": ""}}, "a.txt": {"file": {"contents": "a"}}},
        )
        assert not (path / ".DS_Store").exists()
        assert (path / "a.txt").read_text() == "a"

    @pytest.mark.parametrize("project_id", ["", ".", "..", "a/b", "..\\x"])
    def test_rejects_bad_project_ids(self, fs, project_id) -> None:
        with pytest.raises(ProjectFsError):
            fs.get_project_path(project_id)

    def test_delete(self, fs) -> None:
        fs.write_project_files("p1", {"a.txt": {"file": {"contents": "a"}}})
        fs.delete_project_files("p1")
        assert not fs.exists("p1")
        fs.delete_project_files("p1")

    def test_binary_detection(self) -> None:
        assert is_binary_path("assets/Logo.PNG")
        assert is_binary_path("fonts/a.woff2")
        assert not is_binary_path("src/main.ts")
