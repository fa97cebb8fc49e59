"""Tests for the durable explanation cache."""

import json
import threading

from security_marker.cache import METADATA_FILE, CacheTable, ExplanationCache


class TestExplanationCache:
    """In-memory overlay and write-through persistence."""

    def test_missing_directory_starts_empty(self, tmp_path):
        cache = ExplanationCache(tmp_path / "nope")
        assert len(cache) == 0
        assert cache.get(CacheTable.EXPLANATIONS, "C#m()") is None
        assert not cache.is_valid()

    def test_unencodable_value_does_not_break_later_writes(self, tmp_path):
        """A lone surrogate in a reply is stored escaped and the table stays writable."""
        cache = ExplanationCache(tmp_path / "c")
        cache.put(CacheTable.RAW_RESPONSES, "k", "overview: \ud800")
        cache.put(CacheTable.RAW_RESPONSES, "k2", "overview: fine")

        reloaded = ExplanationCache(tmp_path / "c")
        assert reloaded.get(CacheTable.RAW_RESPONSES, "k2") == "overview: fine"
        assert reloaded.get(CacheTable.RAW_RESPONSES, "k") == "overview: \ud800"

    def test_put_and_get(self, cache):
        cache.put(CacheTable.EXPLANATIONS, "C#m()", "<html>x</html>")
        assert cache.get(CacheTable.EXPLANATIONS, "C#m()") == "<html>x</html>"
        assert cache.is_valid()

    def test_tables_are_independent(self, cache):
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        assert cache.get(CacheTable.EXPLANATIONS, "C#m()") is None

    def test_put_is_idempotent(self, cache):
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        assert cache.snapshot(CacheTable.LEVELS) == {"C#m()": "HIGH"}

    def test_overwrite_replaces_value(self, cache):
        cache.put(CacheTable.LEVELS, "C#m()", "LOW")
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        assert cache.get(CacheTable.LEVELS, "C#m()") == "HIGH"

    def test_persists_across_instances(self, tmp_path):
        first = ExplanationCache(tmp_path / "c")
        first.put(CacheTable.RAW_RESPONSES, "C#m()|CC|3", "overview: x")
        first.put_all(CacheTable.LEVELS, {"C#m()": "HIGH", "C#n()": "LOW"})

        second = ExplanationCache(tmp_path / "c")
        assert second.get(CacheTable.RAW_RESPONSES, "C#m()|CC|3") == "overview: x"
        assert second.snapshot(CacheTable.LEVELS) == {"C#m()": "HIGH", "C#n()": "LOW"}
        assert second.is_valid()
        assert second.last_write is not None

    def test_file_layout(self, tmp_path):
        cache = ExplanationCache(tmp_path / "c")
        cache.put(CacheTable.EXPLANATIONS, "C#m()", "text")

        data = json.loads((tmp_path / "c" / "explanation_cache.json").read_text())
        assert data == {"C#m()": "text"}
        meta = json.loads((tmp_path / "c" / METADATA_FILE).read_text())
        assert meta["version"] == 1
        assert "timestamp" in meta

    def test_no_temp_files_left_behind(self, tmp_path):
        cache = ExplanationCache(tmp_path / "c")
        for i in range(5):
            cache.put(CacheTable.LEVELS, f"C#m{i}()", "LOW")
        assert not [p for p in (tmp_path / "c").iterdir() if p.suffix == ".tmp"]

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        directory = tmp_path / "c"
        directory.mkdir()
        (directory / "levels_cache.json").write_text("{not json")
        (directory / "explanation_cache.json").write_text(json.dumps({"C#m()": "ok"}))

        cache = ExplanationCache(directory)
        assert cache.snapshot(CacheTable.LEVELS) == {}
        assert cache.get(CacheTable.EXPLANATIONS, "C#m()") == "ok"

    def test_wrong_shape_reads_as_empty(self, tmp_path):
        directory = tmp_path / "c"
        directory.mkdir()
        (directory / "llm_cache.json").write_text(json.dumps({"k": 3}))
        (directory / "levels_cache.json").write_text(json.dumps(["HIGH"]))

        cache = ExplanationCache(directory)
        assert len(cache) == 0

    def test_remove(self, cache):
        cache.put(CacheTable.EXPLANATIONS, "C#m()", "text")
        assert cache.remove(CacheTable.EXPLANATIONS, "C#m()") is True
        assert cache.remove(CacheTable.EXPLANATIONS, "C#m()") is False
        assert cache.get(CacheTable.EXPLANATIONS, "C#m()") is None

    def test_clear_all(self, tmp_path):
        cache = ExplanationCache(tmp_path / "c")
        cache.put(CacheTable.EXPLANATIONS, "C#m()", "text")
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")

        cache.clear_all()

        assert len(cache) == 0
        assert not (tmp_path / "c" / "explanation_cache.json").exists()
        assert len(ExplanationCache(tmp_path / "c")) == 0

    def test_clear_all_keeps_foreign_files(self, tmp_path):
        """Only the cache's own files are removed from a shared directory."""
        shared = tmp_path / "shared"
        shared.mkdir()
        notes = shared / "NOTES.md"
        notes.write_text("keep me")
        cache = ExplanationCache(shared)
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        (shared / ".levels_cache.json.abc123.tmp").write_text("{}")

        cache.clear_all()

        assert notes.read_text() == "keep me"
        assert sorted(p.name for p in shared.iterdir()) == ["NOTES.md"]

    def test_clear_all_removes_emptied_directory(self, tmp_path):
        cache = ExplanationCache(tmp_path / "c")
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        cache.clear_all()
        assert not (tmp_path / "c").exists()

    def test_usable_after_clear_all(self, cache):
        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")
        cache.clear_all()
        cache.put(CacheTable.LEVELS, "C#n()", "LOW")
        assert cache.snapshot(CacheTable.LEVELS) == {"C#n()": "LOW"}

    def test_write_failure_is_a_noop(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("a file where the cache directory should be")
        cache = ExplanationCache(blocker / "c")

        cache.put(CacheTable.LEVELS, "C#m()", "HIGH")

        # Memory still serves the value; the durable write was skipped
        assert cache.get(CacheTable.LEVELS, "C#m()") == "HIGH"
        assert not cache.is_valid()

    def test_stats(self, cache):
        cache.put_all(CacheTable.LEVELS, {"a": "LOW", "b": "HIGH"})
        stats = cache.stats()
        assert stats["levels"] == 2
        assert stats["explanations"] == 0
        assert stats["valid"] is True

    def test_concurrent_writers(self, tmp_path):
        cache = ExplanationCache(tmp_path / "c")

        def writer(n):
            for i in range(20):
                cache.put(CacheTable.EXPLANATIONS, f"C#m{n}_{i}()", "x")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache.keys(CacheTable.EXPLANATIONS)) == 80
        assert len(ExplanationCache(tmp_path / "c").keys(CacheTable.EXPLANATIONS)) == 80
