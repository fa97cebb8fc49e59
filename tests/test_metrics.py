"""Tests for the Python metrics extractor."""

import ast

import pytest

from security_marker.exceptions import ExtractorUnavailableError
from security_marker.metrics import PythonMetricsExtractor, cyclomatic_complexity, lines_of_code
from security_marker.models import MetricKind


def complexity_of(source: str) -> int:
    return cyclomatic_complexity(ast.parse(source).body[0])


class TestCyclomaticComplexity:
    def test_straight_line(self):
        assert complexity_of("def f():\n    return 1\n") == 1

    def test_branches_and_loops(self):
        source = (
            "def f(xs):\n"
            "    for x in xs:\n"
            "        if x > 0:\n"
            "            continue\n"
            "        elif x < -10:\n"
            "            break\n"
            "    while xs:\n"
            "        xs.pop()\n"
            "    return 1 if xs else 0\n"
        )
        # for, if, elif, while, ternary
        assert complexity_of(source) == 6

    def test_boolean_operators(self):
        assert complexity_of("def f(a, b, c):\n    return a and b and c or a\n") == 4

    def test_exception_handlers(self):
        source = (
            "def f():\n"
            "    try:\n"
            "        g()\n"
            "    except ValueError:\n"
            "        pass\n"
            "    except (KeyError, IndexError):\n"
            "        pass\n"
        )
        assert complexity_of(source) == 3

    def test_comprehension_filters(self):
        assert complexity_of("def f(xs):\n    return [x for x in xs if x if x > 1]\n") == 3

    def test_match_cases(self):
        source = (
            "def f(cmd):\n"
            "    match cmd:\n"
            "        case 'a':\n"
            "            return 1\n"
            "        case 'b':\n"
            "            return 2\n"
            "        case _:\n"
            "            return 0\n"
        )
        assert complexity_of(source) == 4

    def test_nested_definitions_are_excluded(self):
        source = "def f():\n    def g(x):\n        if x:\n            return 1\n    return g\n"
        assert complexity_of(source) == 1


def test_lines_of_code_skips_blank_and_comment_lines():
    source = "def f():\n    # note\n\n    x = 1\n    return x\n"
    node = ast.parse(source).body[0]
    assert lines_of_code(node, source.splitlines()) == 3


class TestExtractor:
    def test_complexity(self, sample_project):
        scores = PythonMetricsExtractor().extract(sample_project, MetricKind.COMPLEXITY)
        assert scores["pkg.io.Reader#open(Path,str)"] == 5.0
        assert scores["pkg.io.Reader#records(str...,dict[str,Record])"] == 3.0
        assert scores["pkg.io#helper(Any)"] == 1.0
        assert scores["pkg.io#outer(bool)"] == 1.0

    def test_skipped_files(self, sample_project):
        scores = PythonMetricsExtractor().extract(sample_project, MetricKind.COMPLEXITY)
        assert not any("generated" in sig or "oops" in sig for sig in scores)
        assert not any("inner" in sig for sig in scores)

    def test_lines_of_code(self, sample_project):
        scores = PythonMetricsExtractor().extract(sample_project, MetricKind.LOC)
        assert scores["pkg.io#helper(Any)"] == 2.0
        assert scores["pkg.io.Reader#open(Path,str)"] == 8.0

    def test_lack_of_cohesion(self, sample_project):
        scores = PythonMetricsExtractor().extract(sample_project, MetricKind.LCOM)
        assert scores["pkg.models.Account#deposit(Any)"] == pytest.approx(0.5)
        assert scores["pkg.models.Account#__init__(Any,Any)"] == pytest.approx(0.5)
        assert scores["pkg.io#helper(Any)"] == 0.0

    def test_missing_root(self, tmp_path):
        with pytest.raises(ExtractorUnavailableError):
            PythonMetricsExtractor().extract(tmp_path / "absent", MetricKind.COMPLEXITY)
