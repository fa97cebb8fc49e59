"""Symbol index over Python sources.

Signatures produced here are authoritative: parameter annotations have the
names a module imported expanded to their qualified form, so
``def open(self, path: Path)`` in ``pkg/io.py`` under ``from pathlib import
Path`` becomes ``pkg.io.Reader#open(pathlib.Path)``.
"""

from __future__ import annotations

import ast
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..exceptions import SymbolIndexError
from ..logging_config import get_logger
from ..pysource import iter_functions, module_name, read_module, signature_of, source_segment
from ..sources import iter_python_files

logger = get_logger(__name__)


@dataclass(frozen=True)
class IndexedMethod:
    signature: str
    path: Path
    source: Optional[str]


def import_aliases(tree: ast.Module, module: str, is_package: bool) -> dict[str, str]:
    """Local name -> fully qualified name for every import in a module.

    Relative imports are resolved against ``module``.
    """
    aliases: dict[str, str] = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    aliases[alias.asname] = alias.name
                else:
                    top = alias.name.split(".", 1)[0]
                    aliases[top] = top
        elif isinstance(node, ast.ImportFrom):
            base = _resolve_from(module, is_package, node.level, node.module)
            for alias in node.names:
                if alias.name == "*":
                    continue
                qualified = f"{base}.{alias.name}" if base else alias.name
                aliases[alias.asname or alias.name] = qualified
    return aliases


def _resolve_from(module: str, is_package: bool, level: int, target: Optional[str]) -> str:
    if level == 0:
        return target or ""
    parts = module.split(".")
    if not is_package:
        parts = parts[:-1]
    if level > 1:
        parts = parts[: len(parts) - (level - 1)] if level - 1 <= len(parts) else []
    if target:
        parts.append(target)
    return ".".join(parts)


class _Qualifier(ast.NodeTransformer):
    """Rewrites imported names inside an annotation expression."""

    def __init__(self, aliases: dict[str, str]) -> None:
        self.aliases = aliases

    def visit_Name(self, node: ast.Name) -> ast.AST:
        qualified = self.aliases.get(node.id)
        if qualified is None or qualified == node.id:
            return node
        return ast.copy_location(ast.parse(qualified, mode="eval").body, node)


def qualified_annotation(aliases: dict[str, str]):
    def fmt(annotation: ast.expr) -> str:
        copy = ast.parse(ast.unparse(annotation), mode="eval").body
        return ast.unparse(_Qualifier(aliases).visit(copy))

    return fmt


class PythonSymbolIndex:
    """Authoritative method signatures and source text for Python code.

    The index is built on first use and kept until :meth:`invalidate`.
    """

    def __init__(self, source_roots: Iterable[Union[str, Path]]) -> None:
        self.source_roots = [Path(r) for r in source_roots]
        self._lock = threading.Lock()
        self._methods: Optional[dict[str, IndexedMethod]] = None

    def all_authoritative_signatures(self) -> set[str]:
        return set(self._index())

    def source_text_for(self, signature: str) -> Optional[str]:
        method = self._index().get(signature)
        return method.source if method is not None else None

    def path_for(self, signature: str) -> Optional[Path]:
        method = self._index().get(signature)
        return method.path if method is not None else None

    def invalidate(self) -> None:
        with self._lock:
            self._methods = None
        logger.debug("Symbol index invalidated")

    def __len__(self) -> int:
        return len(self._index())

    def _index(self) -> dict[str, IndexedMethod]:
        with self._lock:
            if self._methods is None:
                self._methods = self._build()
            return self._methods

    def _build(self) -> dict[str, IndexedMethod]:
        methods: dict[str, IndexedMethod] = {}
        for root in self.source_roots:
            if not root.exists():
                raise SymbolIndexError(f"source root does not exist: {root}")
            for path in iter_python_files(root):
                parsed = read_module(path)
                if parsed is None:
                    continue
                tree, text = parsed
                module = module_name(path, root)
                aliases = import_aliases(tree, module, path.name == "__init__.py")
                fmt = qualified_annotation(aliases)
                for site in iter_functions(tree, module, path):
                    signature = signature_of(site, fmt)
                    if signature in methods:
                        # Redefinition (overload stubs, conditional defs): last one wins
                        logger.debug("Duplicate definition of %s in %s", signature, path)
                    methods[signature] = IndexedMethod(signature, path, source_segment(site, text))
        logger.info("Indexed %d methods under %d source root(s)", len(methods), len(self.source_roots))
        return methods
