"""Tests for source-file detection and the file watcher."""

import pytest

from conftest import FakeTimerFactory
from security_marker.config import MarkerConfig
from security_marker.debounce import ChangeDebouncer
from security_marker.sources import is_ignored_dir, is_source_path, iter_python_files
from security_marker.watch import SourceWatcher, _SourceFilter


@pytest.mark.parametrize(
    "path, expected",
    [
        ("pkg/mod.py", True),
        ("Main.java", True),
        ("app/Build.kts", True),
        ("notes.txt", False),
        (".git/hook.py", False),
        ("node_modules/x/index.py", False),
        ("pkg.egg-info/setup.py", False),
        ("./pkg/mod.py", True),
    ],
)
def test_is_source_path(path, expected):
    assert is_source_path(path) is expected


def test_ignored_dirs():
    assert is_ignored_dir(".tox")
    assert is_ignored_dir("__pycache__")
    assert not is_ignored_dir("src")


def test_iter_python_files(sample_project):
    files = [p.relative_to(sample_project).as_posix() for p in iter_python_files(sample_project)]
    assert files == ["pkg/__init__.py", "pkg/broken.py", "pkg/io.py", "pkg/models.py"]


def test_filter_is_relative_to_root(tmp_path):
    root = tmp_path / ".workspace" / "project"
    watch_filter = _SourceFilter(root)
    assert watch_filter(None, str(root / "pkg" / "a.py"))
    assert not watch_filter(None, str(root / ".venv" / "a.py"))
    assert not watch_filter(None, str(root / "README.md"))


def test_watcher_start_and_stop(tmp_path):
    debouncer = ChangeDebouncer(lambda paths: None, MarkerConfig(), timer_factory=FakeTimerFactory())
    watcher = SourceWatcher(tmp_path, debouncer)

    watcher.start()
    assert watcher.is_running
    watcher.stop()
    assert not watcher.is_running
