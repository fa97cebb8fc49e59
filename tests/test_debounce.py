"""Tests for the two-stage change debouncer."""

import threading
from dataclasses import replace
from pathlib import Path

import pytest

from conftest import FakeTimerFactory
from security_marker.config import MarkerConfig
from security_marker.debounce import ChangeDebouncer


class Recorder:
    def __init__(self, fail: bool = False):
        self.batches = []
        self.fail = fail

    def __call__(self, paths):
        self.batches.append(paths)
        if self.fail:
            raise RuntimeError("refresh exploded")


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def debouncer(recorder, config, timers):
    return ChangeDebouncer(recorder, config, timer_factory=timers)


class TestSignalFiltering:
    """Only source files outside ignored directories count."""

    @pytest.mark.parametrize("path", ["README.md", ".git/hooks/x.py", "venv/lib.py", "pkg/__pycache__/m.py"])
    def test_irrelevant_paths_are_ignored(self, debouncer, timers, path):
        assert debouncer.on_source_changed(path) is False
        assert timers.timers == []

    @pytest.mark.parametrize("path", ["pkg/service.py", "src/Main.java", "stubs/api.pyi"])
    def test_source_paths_are_accepted(self, debouncer, timers, path):
        assert debouncer.on_source_changed(path) is True
        assert len(timers.live) == 1

    def test_auto_refresh_disabled(self, recorder, config, timers):
        debouncer = ChangeDebouncer(recorder, replace(config, auto_refresh=False), timer_factory=timers)
        assert debouncer.on_source_changed("pkg/a.py") is False
        assert timers.timers == []
        assert not debouncer.is_pending

    def test_absolute_paths_are_judged_relative_to_project(self, recorder, config, timers, tmp_path):
        project = tmp_path / ".hidden-parent" / "project"
        debouncer = ChangeDebouncer(recorder, config, timer_factory=timers, project_root=project)

        assert debouncer.on_source_changed(project.resolve() / "pkg" / "a.py") is True
        assert debouncer.on_source_changed(tmp_path.resolve() / "elsewhere.py") is False
        timers.fire_last()
        timers.fire_last()
        assert recorder.batches == [frozenset({project.resolve() / "pkg" / "a.py"})]


class TestCoalescing:
    """Bursts collapse into one refresh."""

    def test_burst_yields_one_refresh(self, debouncer, recorder, timers, config):
        for name in ("a.py", "b.py", "a.py", "c.py"):
            debouncer.on_source_changed(f"pkg/{name}")

        assert len(timers.timers) == 1
        save = timers.timers[0]
        assert save.interval == config.save_debounce_seconds

        save.fire()
        assert len(timers.timers) == 2
        recompute = timers.timers[1]
        assert recompute.interval == config.recompute_delay_seconds
        assert recorder.batches == []

        recompute.fire()
        assert recorder.batches == [frozenset(Path(f"pkg/{n}") for n in ("a.py", "b.py", "c.py"))]
        assert not debouncer.is_pending

    def test_no_second_recompute_while_pending(self, debouncer, recorder, timers):
        debouncer.on_source_changed("pkg/a.py")
        timers.fire_last()
        recompute = timers.timers[-1]

        debouncer.on_source_changed("pkg/b.py")
        second_save = timers.timers[-1]
        assert second_save is not recompute
        second_save.fire()

        # The save window closed without arming another recompute timer
        assert timers.timers[-1] is second_save
        recompute.fire()
        assert recorder.batches == [frozenset({Path("pkg/a.py"), Path("pkg/b.py")})]

    def test_new_burst_after_refresh_starts_over(self, debouncer, recorder, timers):
        debouncer.on_source_changed("pkg/a.py")
        timers.fire_last()
        timers.fire_last()

        debouncer.on_source_changed("pkg/b.py")
        timers.fire_last()
        timers.fire_last()

        assert recorder.batches == [frozenset({Path("pkg/a.py")}), frozenset({Path("pkg/b.py")})]

    def test_changes_during_refresh_are_rescheduled(self, config, timers):
        batches = []

        def refresh(paths):
            batches.append(paths)
            if len(batches) == 1:
                # Simulate an edit landing while the refresh is running
                debouncer._pending.add(Path("pkg/late.py"))

        debouncer = ChangeDebouncer(refresh, config, timer_factory=timers)
        debouncer.on_source_changed("pkg/a.py")
        timers.fire_last()
        timers.fire_last()

        assert len(timers.live) == 1
        timers.fire_last()
        assert batches == [frozenset({Path("pkg/a.py")}), frozenset({Path("pkg/late.py")})]


class TestFlushAndCancel:
    def test_flush_fires_immediately(self, debouncer, recorder, timers):
        debouncer.on_source_changed(["pkg/a.py", "pkg/b.py"])
        debouncer.flush()

        assert recorder.batches == [frozenset({Path("pkg/a.py"), Path("pkg/b.py")})]
        assert all(t.cancelled for t in timers.timers)
        assert not debouncer.is_pending

    def test_flush_without_changes_is_noop(self, debouncer, recorder):
        debouncer.flush()
        assert recorder.batches == []

    def test_cancel_drops_pending_work(self, debouncer, recorder, timers):
        debouncer.on_source_changed("pkg/a.py")
        debouncer.cancel()

        assert timers.timers[0].cancelled
        assert not debouncer.is_pending
        debouncer.flush()
        assert recorder.batches == []


class TestFailures:
    def test_callback_exception_is_contained(self, config, timers, caplog):
        recorder = Recorder(fail=True)
        debouncer = ChangeDebouncer(recorder, config, timer_factory=timers)

        debouncer.on_source_changed("pkg/a.py")
        timers.fire_last()
        timers.fire_last()

        assert len(recorder.batches) == 1
        assert not debouncer.is_pending
        assert "Debounced refresh failed" in caplog.text

        # The debouncer keeps working afterwards
        assert debouncer.on_source_changed("pkg/b.py") is True


def test_real_timers_fire_once():
    done = threading.Event()
    batches = []

    def refresh(paths):
        batches.append(paths)
        done.set()

    config = MarkerConfig(save_debounce_seconds=0.05, recompute_delay_seconds=0.1)
    debouncer = ChangeDebouncer(refresh, config)
    for name in ("a.py", "b.py", "c.py"):
        debouncer.on_source_changed(f"pkg/{name}")

    assert done.wait(timeout=5)
    debouncer.cancel()
    assert batches == [frozenset(Path(f"pkg/{n}") for n in ("a.py", "b.py", "c.py"))]
