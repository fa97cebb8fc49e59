"""Shared fixtures and collaborator fakes for Security Marker tests."""

import threading
from pathlib import Path
from typing import Callable, Optional

import pytest

from security_marker.cache import ExplanationCache
from security_marker.config import MarkerConfig
from security_marker.exceptions import ExtractorUnavailableError, GenerationError, ResponseParseError
from security_marker.generation.prompts import parse_response
from security_marker.models import GenerationResult, MetricKind, Usage

VALID_RAW = 'overview: "Parses untrusted input"\nremediation: "Validate input; Limit size"'


class FakeSymbolIndex:
    """Authoritative signatures with optional source text."""

    def __init__(self, methods: dict[str, Optional[str]]):
        self.methods = dict(methods)
        self.invalidated = 0

    def all_authoritative_signatures(self) -> set[str]:
        return set(self.methods)

    def source_text_for(self, signature: str) -> Optional[str]:
        return self.methods.get(signature)

    def invalidate(self) -> None:
        self.invalidated += 1


class FakeExtractor:
    """Returns fixed scores for every source root."""

    def __init__(self, scores: dict[str, float], fail: bool = False):
        self.scores = dict(scores)
        self.fail = fail
        self.calls: list[tuple[Path, MetricKind]] = []

    def extract(self, source_root, metric: MetricKind) -> dict[str, float]:
        self.calls.append((Path(source_root), metric))
        if self.fail:
            raise ExtractorUnavailableError(source_root, "extractor offline")
        return dict(self.scores)


class FakeGenerationService:
    """Generation service returning canned raw responses.

    ``responses`` maps a signature to a raw document or an exception to
    raise; other signatures get VALID_RAW. Empty and unparseable outcomes
    raise with the configured usage attached, like a billed bad completion. ``before_call`` runs at the start
    of every call, which lets tests observe or interfere with a live run.
    """

    def __init__(
        self,
        responses: Optional[dict] = None,
        usage: Optional[Usage] = Usage(input_tokens=100, output_tokens=50),
        before_call: Optional[Callable[[str], None]] = None,
    ):
        self.responses = responses or {}
        self.usage = usage
        self.before_call = before_call
        self.calls: list[tuple[str, MetricKind, float, str]] = []
        self._lock = threading.Lock()

    def generate(self, signature, metric, metric_value, source_text) -> GenerationResult:
        with self._lock:
            self.calls.append((signature, metric, metric_value, source_text))
        if self.before_call is not None:
            self.before_call(signature)
        outcome = self.responses.get(signature, VALID_RAW)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            raise GenerationError(signature, "empty completion", usage=self.usage)
        try:
            response = parse_response(outcome)
        except ResponseParseError as e:
            e.usage = self.usage
            raise
        return GenerationResult(raw=outcome, response=response, usage=self.usage)

    @property
    def called_signatures(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeTimer:
    """Timer that only fires when the test says so."""

    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        assert self.started and not self.cancelled and not self.fired
        self.fired = True
        self.function()


class FakeTimerFactory:
    """Records every timer a component creates."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]

    def fire_last(self) -> FakeTimer:
        timer = self.timers[-1]
        timer.fire()
        return timer


@pytest.fixture
def config() -> MarkerConfig:
    return MarkerConfig()


@pytest.fixture
def cache(tmp_path) -> ExplanationCache:
    return ExplanationCache(tmp_path / "cache")


@pytest.fixture
def timers() -> FakeTimerFactory:
    return FakeTimerFactory()


SAMPLE_IO = '''\
from pathlib import Path
import typing as t

from .models import Record


class Reader:
    def __init__(self, root: Path):
        self.root = root
        self.handle = None

    def open(self, path: Path, mode: str = "r") -> "Reader":
        if mode not in ("r", "rb"):
            raise ValueError(mode)
        for part in path.parts:
            if part == ".." or part.startswith("~"):
                raise PermissionError(part)
        self.handle = (self.root / path).open(mode)
        return self

    def records(self, *names: str, **filters: "Record") -> t.List[Record]:
        return [r for r in self.handle if r and filters]

    @staticmethod
    def exists(path: Path) -> bool:
        return path.exists()


def helper(x):
    # identity

    return x


def outer(flag: bool):
    def inner():
        if flag:
            return 1
        return 0
    return inner
'''

SAMPLE_MODELS = '''\
class Record:
    pass


class Account:
    def __init__(self, owner, balance):
        self.owner = owner
        self.balance = balance

    def deposit(self, amount):
        self.balance += amount

    def rename(self, owner):
        self.owner = owner
'''


@pytest.fixture
def sample_project(tmp_path) -> Path:
    """A small package plus files every scanner must skip."""
    root = tmp_path / "project"
    pkg = root / "pkg"
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text("")
    (pkg / "io.py").write_text(SAMPLE_IO)
    (pkg / "models.py").write_text(SAMPLE_MODELS)
    (pkg / "broken.py").write_text("def oops(:\n    pass\n")
    for ignored in (".venv", "build"):
        (root / ignored).mkdir()
        (root / ignored / "gen.py").write_text("def generated(): pass\n")
    return root
