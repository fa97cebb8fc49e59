"""Per-method static metrics for Python sources.

Signatures are emitted with parameter annotations exactly as written in the
source; reconciling them with the symbol index is the matcher's job.

Metrics:
    CC    1 + decision points (branches, loops, handlers, boolean operators,
          conditional expressions, comprehension filters, match cases, asserts)
    LOC   non-blank, non-comment lines of the definition
    LCOM  Henderson-Sellers LCOM* of the enclosing class, clamped to [0, 1];
          module-level functions score 0
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Union

from ..exceptions import ExtractorUnavailableError
from ..logging_config import get_logger
from ..models import MetricKind
from ..pysource import FunctionSite, is_method, iter_functions, module_name, read_module, signature_of
from ..sources import iter_python_files

logger = get_logger(__name__)

_BRANCH_NODES = (
    ast.If,
    ast.For,
    ast.AsyncFor,
    ast.While,
    ast.ExceptHandler,
    ast.With,
    ast.AsyncWith,
    ast.IfExp,
    ast.Assert,
)


def _walk_own_body(node: ast.AST):
    """Walk a function body without descending into nested defs or classes."""
    stack = list(ast.iter_child_nodes(node))
    while stack:
        child = stack.pop()
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            continue
        yield child
        stack.extend(ast.iter_child_nodes(child))


def cyclomatic_complexity(node: ast.AST) -> int:
    score = 1
    for child in _walk_own_body(node):
        if isinstance(child, _BRANCH_NODES):
            score += 1
        elif isinstance(child, ast.BoolOp):
            score += len(child.values) - 1
        elif isinstance(child, ast.comprehension):
            score += len(child.ifs)
        elif isinstance(child, ast.match_case):
            score += 1
    return score


def lines_of_code(node: ast.AST, lines: list[str]) -> int:
    start = node.lineno
    end = node.end_lineno or node.lineno
    count = 0
    for line in lines[start - 1:end]:
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            count += 1
    return count


def _self_name(site: FunctionSite) -> str | None:
    args = [*site.node.args.posonlyargs, *site.node.args.args]
    if not args or not is_method(site):
        return None
    return args[0].arg


def _attributes_used(site: FunctionSite) -> set[str]:
    self_name = _self_name(site)
    if self_name is None:
        return set()
    return {
        n.attr
        for n in ast.walk(site.node)
        if isinstance(n, ast.Attribute) and isinstance(n.value, ast.Name) and n.value.id == self_name
    }


def lack_of_cohesion(methods: list[FunctionSite]) -> float:
    """Henderson-Sellers LCOM* over ``self.<attr>`` accesses.

    ``(mean(mu(A)) - m) / (1 - m)`` where ``mu(A)`` counts the methods using
    attribute ``A`` and ``m`` is the number of methods.
    """
    usage = [_attributes_used(site) for site in methods]
    attributes = set().union(*usage) if usage else set()
    m = len(methods)
    if m <= 1 or not attributes:
        return 0.0
    mean_mu = sum(sum(1 for used in usage if a in used) for a in attributes) / len(attributes)
    value = (mean_mu - m) / (1 - m)
    return min(1.0, max(0.0, value))


class PythonMetricsExtractor:
    """MetricsExtractor for Python source roots."""

    def extract(self, source_root: Union[str, Path], metric: MetricKind) -> dict[str, float]:
        root = Path(source_root)
        if not root.exists():
            raise ExtractorUnavailableError(str(root), "source root does not exist")

        scores: dict[str, float] = {}
        files = 0
        for path in iter_python_files(root):
            parsed = read_module(path)
            if parsed is None:
                continue
            tree, text = parsed
            files += 1
            scores.update(self._extract_module(tree, text, module_name(path, root), path, metric))

        logger.debug("Extracted %s for %d methods in %d files", metric.metric_id, len(scores), files)
        return scores

    def _extract_module(
        self, tree: ast.Module, text: str, module: str, path: Path, metric: MetricKind
    ) -> dict[str, float]:
        sites = list(iter_functions(tree, module, path))
        lines = text.splitlines()

        cohesion: dict[int, float] = {}
        if metric is MetricKind.LCOM:
            by_class: dict[int, list[FunctionSite]] = {}
            for site in sites:
                if site.cls is not None:
                    by_class.setdefault(id(site.cls), []).append(site)
            cohesion = {key: lack_of_cohesion(methods) for key, methods in by_class.items()}

        out: dict[str, float] = {}
        for site in sites:
            if metric is MetricKind.COMPLEXITY:
                value = float(cyclomatic_complexity(site.node))
            elif metric is MetricKind.LOC:
                value = float(lines_of_code(site.node, lines))
            else:
                value = cohesion.get(id(site.cls), 0.0) if site.cls is not None else 0.0
            out[signature_of(site)] = value
        return out
