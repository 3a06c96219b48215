"""
Tests for the local Git mirror.
"""

import pytest

git = pytest.importorskip("git")

from knowledge_hub.store import create_initial_state  # noqa: E402
from knowledge_hub.sync import project_store  # noqa: E402
from knowledge_hub.versioning import LocalMirror  # noqa: E402


@pytest.fixture
def mirror(tmp_path):
    mirror = LocalMirror(str(tmp_path / "mirror"))
    assert mirror.initialize_repository()
    return mirror


def test_initialize_is_idempotent(mirror):
    again = LocalMirror(str(mirror.repo_path))
    assert again.initialize_repository()
    assert again.get_commit_history() == []


def test_snapshot_commit(mirror):
    files = project_store(create_initial_state())

    mirror.write_files(files)
    sha = mirror.commit_snapshot("Update 5 files")

    assert sha is not None
    committed = {item.path for item in mirror.repo.head.commit.tree.traverse()
                 if item.type == "blob"}
    assert committed == {f.path for f in files}
    welcome = mirror.repo_path / "Personal" / "Notes" / "Welcome_to_Knowledge_Hub.md"
    assert welcome.read_text(encoding="utf-8").startswith("---\nid: welcome\n")


def test_unchanged_snapshot_makes_no_commit(mirror):
    files = [("a.md", "A")]
    mirror.write_files(files)
    assert mirror.commit_snapshot("first")

    mirror.write_files(files)
    assert mirror.commit_snapshot("second") is None

    history = mirror.get_commit_history()
    assert [c["message"] for c in history] == ["first"]


def test_changed_snapshot_makes_new_commit(mirror):
    mirror.write_files([("a.md", "A")])
    mirror.commit_snapshot("first")
    mirror.write_files([("a.md", "B")])
    mirror.commit_snapshot("second")

    assert [c["message"] for c in mirror.get_commit_history()] == ["second", "first"]


@pytest.mark.parametrize("path", ["../outside.md", ".git/config", "/etc/passwd"])
def test_paths_must_stay_inside_the_mirror(mirror, path):
    with pytest.raises(ValueError):
        mirror.write_files([(path, "x")])


def test_commit_requires_initialized_repository(tmp_path):
    with pytest.raises(RuntimeError):
        LocalMirror(str(tmp_path / "never")).commit_snapshot("x")
