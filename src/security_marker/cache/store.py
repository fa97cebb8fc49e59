"""
Durable explanation cache.

Three logical tables live in memory and are mirrored to JSON documents under
a project-scoped directory:

    llm_cache.json          raw generation responses, keyed by metric key
    explanation_cache.json  rendered explanations, keyed by signature
    levels_cache.json       severity labels, keyed by signature
    cache_metadata.json     last successful write timestamp

Every write serialises the whole table to a temp file in the same directory
and ``os.replace``s it over the target, so a crash can lose at most the
write in flight and never corrupts an already durable table. Storage
failures are logged and downgraded to misses / no-ops.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..exceptions import CacheStorageError
from ..logging_config import get_logger

logger = get_logger(__name__)

_METADATA_VERSION = 1
METADATA_FILE = "cache_metadata.json"


class CacheTable(Enum):
    """Logical tables and their backing file names."""

    RAW_RESPONSES = "llm_cache.json"
    EXPLANATIONS = "explanation_cache.json"
    LEVELS = "levels_cache.json"

    @property
    def filename(self) -> str:
        return self.value


class ExplanationCache:
    """
    Project-scoped store for raw responses, explanations and severity levels.

    Features:
    - Load-all on construction, absent files read as empty tables
    - Synchronous write-through with atomic file replacement
    - One lock per table; last writer wins per key
    - Corrupt files are ignored rather than fatal
    """

    def __init__(self, cache_dir: str | Path):
        """
        Initialize the cache and load whatever is already on disk.

        Args:
            cache_dir: Directory holding the cache documents (created lazily)
        """
        self.cache_dir = Path(cache_dir)
        self._tables: dict[CacheTable, dict[str, str]] = {t: {} for t in CacheTable}
        self._locks: dict[CacheTable, threading.RLock] = {t: threading.RLock() for t in CacheTable}
        self._meta_lock = threading.Lock()
        self._timestamp: Optional[datetime] = None
        self._valid = False
        self._load_from_disk()

    # -- reads ---------------------------------------------------------------

    def get(self, table: CacheTable, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None."""
        with self._locks[table]:
            return self._tables[table].get(key)

    def keys(self, table: CacheTable) -> set[str]:
        with self._locks[table]:
            return set(self._tables[table])

    def snapshot(self, table: CacheTable) -> dict[str, str]:
        """Copy of a whole table."""
        with self._locks[table]:
            return dict(self._tables[table])

    def __len__(self) -> int:
        return sum(len(self.keys(t)) for t in CacheTable)

    def is_valid(self) -> bool:
        """True once a load or write succeeded in this process."""
        return self._valid

    @property
    def last_write(self) -> Optional[datetime]:
        return self._timestamp

    # -- writes --------------------------------------------------------------

    def put(self, table: CacheTable, key: str, value: str) -> None:
        """Insert or overwrite one entry and persist the table."""
        with self._locks[table]:
            self._tables[table][key] = value
            self._save_table(table)

    def put_all(self, table: CacheTable, entries: Mapping[str, str]) -> None:
        """Insert or overwrite several entries with a single durable write."""
        if not entries:
            return
        with self._locks[table]:
            self._tables[table].update(entries)
            self._save_table(table)

    def remove(self, table: CacheTable, key: str) -> bool:
        """Drop one entry; returns whether it existed."""
        with self._locks[table]:
            if self._tables[table].pop(key, None) is None:
                return False
            self._save_table(table)
            return True

    def clear_all(self) -> None:
        """Empty every table and erase the durable representation."""
        for table in CacheTable:
            self._locks[table].acquire()
        try:
            for table in CacheTable:
                self._tables[table].clear()
            with self._meta_lock:
                self._timestamp = None
            self._delete_cache_files()
        finally:
            for table in CacheTable:
                self._locks[table].release()
        logger.info("Cache cleared: %s", self.cache_dir)

    def stats(self) -> dict[str, Any]:
        """Entry counts, location and last write time."""
        return {
            "directory": str(self.cache_dir),
            "valid": self._valid,
            "last_write": self._timestamp.isoformat() if self._timestamp else None,
            "raw_responses": len(self.keys(CacheTable.RAW_RESPONSES)),
            "explanations": len(self.keys(CacheTable.EXPLANATIONS)),
            "levels": len(self.keys(CacheTable.LEVELS)),
        }

    # -- durable storage -----------------------------------------------------

    def _load_from_disk(self) -> None:
        if not self.cache_dir.exists():
            logger.debug("Cache directory %s does not exist, starting empty", self.cache_dir)
            return

        loaded_any = False
        for table in CacheTable:
            try:
                data = self._read_table(table)
            except CacheStorageError as e:
                logger.warning("Ignoring unreadable cache table: %s", e)
                continue
            if data is not None:
                self._tables[table].update(data)
                loaded_any = True

        try:
            self._timestamp = self._read_metadata()
        except CacheStorageError as e:
            logger.warning("Ignoring unreadable cache metadata: %s", e)

        if loaded_any:
            self._valid = True
        logger.debug(
            "Loaded cache from %s: %d raw responses, %d explanations, %d levels",
            self.cache_dir,
            len(self._tables[CacheTable.RAW_RESPONSES]),
            len(self._tables[CacheTable.EXPLANATIONS]),
            len(self._tables[CacheTable.LEVELS]),
        )

    def _read_table(self, table: CacheTable) -> Optional[dict[str, str]]:
        path = self.cache_dir / table.filename
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheStorageError(path, str(e))
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise CacheStorageError(path, "expected an object of string values")
        return data

    def _read_metadata(self) -> Optional[datetime]:
        path = self.cache_dir / METADATA_FILE
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            stamp = data.get("timestamp") if isinstance(data, dict) else None
            return datetime.fromisoformat(stamp) if stamp else None
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise CacheStorageError(path, str(e))

    def _save_table(self, table: CacheTable) -> None:
        """Persist one table (caller holds its lock)."""
        try:
            self._atomic_write(table.filename, self._tables[table])
            self._touch_metadata()
        except CacheStorageError as e:
            logger.warning("Failed to save %s: %s", table.name.lower(), e)
            return
        self._valid = True

    def _touch_metadata(self) -> None:
        with self._meta_lock:
            self._timestamp = datetime.now(timezone.utc)
            self._atomic_write(
                METADATA_FILE,
                {"timestamp": self._timestamp.isoformat(), "version": _METADATA_VERSION},
            )

    def _atomic_write(self, filename: str, payload: Mapping[str, Any]) -> None:
        """Write JSON to a temp file and rename it over ``filename``."""
        target = self.cache_dir / filename
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            content = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.cache_dir, prefix=f".{filename}.", suffix=".tmp", text=True
            )
        except (OSError, TypeError, ValueError) as e:
            raise CacheStorageError(target, str(e))

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, target)
        except (OSError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise CacheStorageError(target, str(e))

    def _delete_cache_files(self) -> None:
        """Remove the files this cache owns; the directory goes only if left empty."""
        if not self.cache_dir.exists():
            return
        names = [table.filename for table in CacheTable] + [METADATA_FILE]
        owned = [self.cache_dir / name for name in names]
        for name in names:
            owned.extend(self.cache_dir.glob(f".{name}.*.tmp"))
        for path in owned:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to delete cache file %s: %s", path, e)
        try:
            self.cache_dir.rmdir()
        except OSError:
            logger.debug("Keeping non-empty cache directory %s", self.cache_dir)
