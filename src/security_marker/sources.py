"""Which files count as source code, shared by the watcher, debouncer and scanners."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Union

# Edits to these trigger a recompute
SOURCE_EXTENSIONS = frozenset({".py", ".pyi", ".java", ".kt", ".kts"})

SKIP_DIRS = frozenset(
    {
        "vendor",
        "node_modules",
        "venv",
        "env",
        "__pycache__",
        "dist",
        "build",
        "target",
        "third_party",
        "site-packages",
    }
)


def is_ignored_dir(name: str) -> bool:
    return name.startswith(".") or name in SKIP_DIRS or name.endswith(".egg-info")


def is_source_path(path: Union[str, Path]) -> bool:
    """True for a source file outside hidden, vendored and build directories."""
    p = Path(path)
    if p.suffix.lower() not in SOURCE_EXTENSIONS:
        return False
    return not any(is_ignored_dir(part) for part in p.parent.parts if part not in (".", ".."))


def iter_python_files(root: Union[str, Path]) -> Iterator[Path]:
    """Python files under ``root`` in sorted order, skipping ignored directories."""
    root = Path(root)
    if root.is_file():
        if root.suffix == ".py":
            yield root
        return

    for path in sorted(root.rglob("*.py")):
        relative = path.relative_to(root)
        if any(is_ignored_dir(part) for part in relative.parts[:-1]):
            continue
        yield path
