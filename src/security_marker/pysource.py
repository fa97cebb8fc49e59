"""Shared ``ast`` helpers for the Python symbol index and metrics extractor.

Both sides walk the same functions and build ``owner#name(types)``
signatures. They differ only in how a parameter annotation is spelled: the
index qualifies imported names, the extractor keeps them as written.
"""

from __future__ import annotations

import ast
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]
AnnotationFormatter = Callable[[ast.expr], str]

UNANNOTATED = "Any"


@dataclass(frozen=True)
class FunctionSite:
    """A function or method definition and where it lives."""

    owner: str
    node: FunctionNode
    cls: Optional[ast.ClassDef]
    path: Path


def module_name(path: Path, root: Path) -> str:
    """Dotted module path of ``path`` relative to ``root``.

    Package ``__init__`` files name the package itself. A root that is a
    single file yields the file's stem.
    """
    if root.is_file():
        return path.stem
    parts = list(path.relative_to(root).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts) or root.name


def read_module(path: Path) -> Optional[tuple[ast.Module, str]]:
    """Parse one file; unreadable or invalid files are logged and skipped."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None
    try:
        return ast.parse(text, filename=str(path)), text
    except (SyntaxError, ValueError) as e:
        logger.warning("Skipping %s: %s", path, e)
        return None


def iter_functions(tree: ast.Module, module: str, path: Path) -> Iterator[FunctionSite]:
    """Module-level functions and methods, including those of nested classes.

    Functions defined inside other functions are not addressable and are
    not yielded.
    """

    def visit(body: list[ast.stmt], owner: str, cls: Optional[ast.ClassDef]) -> Iterator[FunctionSite]:
        for stmt in body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                yield FunctionSite(owner=owner, node=stmt, cls=cls, path=path)
            elif isinstance(stmt, ast.ClassDef):
                yield from visit(stmt.body, f"{owner}.{stmt.name}", stmt)
            elif isinstance(stmt, (ast.If, ast.Try)):
                # Conditional definitions (TYPE_CHECKING, version guards)
                yield from visit(stmt.body, owner, cls)
                yield from visit(stmt.orelse, owner, cls)

    yield from visit(tree.body, module, None)


def is_method(site: FunctionSite) -> bool:
    if site.cls is None:
        return False
    return not any(
        isinstance(d, ast.Name) and d.id == "staticmethod" for d in site.node.decorator_list
    )


def unquote(annotation: ast.expr) -> ast.expr:
    """Forward references ('"Node"') read like the bare annotation."""
    if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
        try:
            return ast.parse(annotation.value.strip(), mode="eval").body
        except SyntaxError:
            return annotation
    return annotation


def parameter_types(site: FunctionSite, fmt: AnnotationFormatter = ast.unparse) -> list[str]:
    """Annotation text per parameter, in declaration order.

    The implicit first parameter of a method (``self``/``cls``) is left out,
    ``*args: T`` reads ``T...`` and ``**kwargs: T`` reads ``dict[str,T]``.
    """
    args = site.node.args
    positional = [*args.posonlyargs, *args.args]
    if is_method(site) and positional:
        positional = positional[1:]

    def text(arg: ast.arg) -> str:
        if arg.annotation is None:
            return UNANNOTATED
        return "".join(fmt(unquote(arg.annotation)).split())

    types = [text(a) for a in positional]
    if args.vararg is not None:
        types.append(f"{text(args.vararg)}...")
    types.extend(text(a) for a in args.kwonlyargs)
    if args.kwarg is not None:
        types.append(f"dict[str,{text(args.kwarg)}]")
    return types


def signature_of(site: FunctionSite, fmt: AnnotationFormatter = ast.unparse) -> str:
    return f"{site.owner}#{site.node.name}({','.join(parameter_types(site, fmt))})"


def source_segment(site: FunctionSite, text: str) -> Optional[str]:
    """Exact source of the definition, decorators included."""
    node = site.node
    start = min([d.lineno for d in node.decorator_list] + [node.lineno])
    end = node.end_lineno
    if end is None:
        return ast.get_source_segment(text, node)
    lines = text.splitlines()
    return "\n".join(lines[start - 1:end])
