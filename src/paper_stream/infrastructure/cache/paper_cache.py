"""
Paper Cache

Two-tier cache for aggregated paper lists, addressed by query signature.

Tiers:
- Memory: cachetools.TLRUCache whose per-item expiry is ``stored_at + ttl``,
  so an entry promoted from disk keeps its original age
- Durable: one JSON file per key, ``{"data": [...], "timestamp": <epoch ms>}``,
  written atomically (temp file + os.replace)

Policy:
- Fixed TTL (30 minutes by default); no refresh-on-read
- Durable I/O failures never propagate: unreadable records are misses,
  failed writes are logged and counted
- Memory mutations happen on the event loop and are individually atomic;
  concurrent get/set for the same key are last-writer-wins
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import os
import tempfile
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cachetools import TLRUCache

from paper_stream.models import Paper, filter_published_after
from paper_stream.shared.dates import iso_from_epoch, parse_timestamp
from paper_stream.shared.exceptions import CacheReadCorruptError, CacheWriteFailedError
from paper_stream.settings import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"
_LOCK_STRIPES = 16


def cache_key(tags: Iterable[str], include_preprints: bool) -> str:
    """
    Build the query signature for a tag set.

    Tags are stripped, lowercased, de-duplicated and sorted, so any
    permutation of the same set yields the same key. Tags differing only in
    case or surrounding whitespace are the same tag. ``%`` and ``,`` inside a
    tag are percent-escaped so ``{"a,b"}`` and ``{"a", "b"}`` stay distinct.
    """
    unique = sorted({_escape_tag(t.strip().lower()) for t in tags if t and t.strip()})
    flag = "true" if include_preprints else "false"
    return f"papers_{','.join(unique)}_{flag}"


def _escape_tag(tag: str) -> str:
    return tag.replace("%", "%25").replace(",", "%2C")


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached result list. Replaced wholesale, never mutated."""

    key: str
    data: tuple[Paper, ...]
    stored_at: float  # epoch seconds

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.stored_at >= ttl

    def to_record(self) -> dict[str, Any]:
        return {
            "data": [p.to_dict() for p in self.data],
            "timestamp": int(round(self.stored_at * 1000)),
        }

    @classmethod
    def from_record(cls, key: str, record: Any) -> CacheEntry:
        """Rebuild an entry from a durable record; raises on malformed input."""
        if not isinstance(record, dict):
            raise TypeError("record is not a JSON object")
        timestamp = record["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise TypeError("timestamp is not a number")
        data = record["data"]
        if not isinstance(data, list):
            raise TypeError("data is not a list")
        return cls(
            key=key,
            data=tuple(Paper.from_dict(item) for item in data),
            stored_at=timestamp / 1000,
        )


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    memory_hits: int = 0
    durable_hits: int = 0
    expirations: int = 0
    corrupt_records: int = 0
    write_failures: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.memory_hits = 0
        self.durable_hits = 0
        self.expirations = 0
        self.corrupt_records = 0
        self.write_failures = 0


class CacheStore:
    """
    Process-wide paper cache with a memory tier and a durable JSON tier.

    Construct once per process and pass it to whatever needs it.

    Example:
        store = CacheStore("/var/cache/paper-stream")
        key = store.key(["nlp", "transformers"], include_preprints=True)

        papers = await store.get(key)
        if papers is None:
            papers = await aggregator.aggregate(["nlp", "transformers"])
            await store.set(key, papers)

        # Or the cache-aside shortcut
        papers = await store.get_or_fetch(key, lambda: aggregator.aggregate(tags))
    """

    key = staticmethod(cache_key)

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the store and make sure the cache directory exists.

        Args:
            cache_dir: Directory for durable records
            ttl: Entry lifetime in seconds
            max_entries: Memory tier capacity (LRU beyond this)
            clock: Epoch-seconds clock, injectable for tests
            log: Logger for cache events (module logger by default)
        """
        self._dir = Path(cache_dir)
        self._ttl = float(ttl)
        self._clock = clock
        self._log = log or logger
        self._memory: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=max_entries,
            ttu=self._expires_at,
            timer=clock,
        )
        self._stripes = [asyncio.Lock() for _ in range(_LOCK_STRIPES)]
        self._stats = CacheStats()
        self._last_cleanup = clock()

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._log.error(f"Error creating cache directory {self._dir}: {e}")

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def cache_dir(self) -> Path:
        return self._dir

    @property
    def counters(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        """Number of live memory entries."""
        return self._memory.currsize

    def _expires_at(self, key: str, entry: CacheEntry, now: float) -> float:
        return entry.stored_at + self._ttl

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}{RECORD_SUFFIX}"

    # ── Public API ────────────────────────────────────────────────────────

    async def get(self, key: str) -> list[Paper] | None:
        """
        Return cached papers for ``key`` or None.

        Memory first; an expired memory entry is evicted and the durable
        record consulted. A fresh durable record is promoted to memory, an
        expired or corrupt one is deleted.
        """
        entry = self._memory.get(key)
        if entry is not None:
            self._stats.hits += 1
            self._stats.memory_hits += 1
            self._log.debug(f"Cache hit (memory): {key}")
            return list(entry.data)

        self._stats.expirations += len(self._memory.expire())

        path = self._path_for(key)
        try:
            entry = await asyncio.to_thread(self._read_record, key, path)
        except CacheReadCorruptError as e:
            self._stats.corrupt_records += 1
            self._log.debug(f"{e}; treating as miss")
            await asyncio.to_thread(self._remove_file, path)
            self._stats.misses += 1
            return None

        if entry is None:
            self._stats.misses += 1
            return None

        if entry.is_expired(self._clock(), self._ttl):
            await asyncio.to_thread(self._remove_file, path)
            self._stats.expirations += 1
            self._stats.misses += 1
            self._log.debug(f"Cache expired (file): {key}")
            return None

        self._memory[key] = entry
        self._stats.hits += 1
        self._stats.durable_hits += 1
        self._log.debug(f"Cache hit (file): {key}")
        return list(entry.data)

    async def set(self, key: str, data: Sequence[Paper]) -> None:
        """
        Store ``data`` under ``key`` in both tiers, stamped with now.

        A failed durable write is logged and counted; the memory tier keeps
        the entry and the caller proceeds as if the write succeeded.
        """
        entry = CacheEntry(key=key, data=tuple(data), stored_at=self._clock())
        self._memory[key] = entry

        try:
            await asyncio.to_thread(self._write_record, self._path_for(key), entry)
        except (OSError, TypeError, ValueError) as e:
            self._stats.write_failures += 1
            self._log.error(str(CacheWriteFailedError(key, str(e))))
            return

        self._log.info(f"Cache set: {key} ({len(entry.data)} papers)")

    async def clear(self) -> int:
        """
        Empty the memory tier and delete every durable record.

        Returns:
            Number of durable files removed
        """
        self._memory.clear()
        removed = await asyncio.to_thread(self._clear_files)
        self._log.info(f"Cache cleared ({removed} files removed)")
        return removed

    async def sweep_expired(self) -> int:
        """
        Remove every entry whose age has reached the TTL.

        Durable records that cannot be parsed are deleted as corrupt.

        Returns:
            Number of durable records removed
        """
        now = self._clock()
        expired = self._memory.expire()
        self._stats.expirations += len(expired)
        removed, corrupt = await asyncio.to_thread(self._sweep_files, now)
        self._stats.corrupt_records += corrupt
        self._last_cleanup = now
        if expired or removed:
            self._log.info(f"Swept {len(expired)} memory entries and {removed} cache files")
        return removed

    def diff(self, key: str, last_update: str | None, fresh: Sequence[Paper]) -> list[Paper]:
        """
        Return only the papers of ``fresh`` published after ``last_update``.

        No ``last_update`` returns ``fresh`` unchanged; an unparsable one is
        ignored and ``fresh`` is returned unfiltered.
        """
        if not last_update:
            return list(fresh)
        since = parse_timestamp(last_update)
        if since is None:
            self._log.warning(f"Error calculating diff for {key}: unparsable lastUpdate {last_update!r}")
            return list(fresh)
        return filter_published_after(fresh, since)

    async def get_or_fetch(
        self,
        key: str,
        fetch_func: Callable[[], Awaitable[Sequence[Paper]]],
    ) -> list[Paper]:
        """
        Get from cache or fetch and cache the result.

        Concurrent misses on the same key are serialized by a striped lock so
        only one of them calls ``fetch_func``. Empty results are not cached.
        Exceptions from ``fetch_func`` propagate.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        async with self._stripes[hash(key) % _LOCK_STRIPES]:
            # Double-check after acquiring lock
            cached = await self.get(key)
            if cached is not None:
                return cached

            papers = list(await fetch_func())
            if papers:
                await self.set(key, papers)
            return papers

    def stats(self) -> dict[str, Any]:
        """Snapshot for the health endpoint."""
        return {
            "memoryEntries": self._memory.currsize,
            "cacheExpiry": int(self._ttl * 1000),
            "lastCleanup": iso_from_epoch(self._last_cleanup),
        }

    # ── Durable tier (runs in worker threads) ─────────────────────────────

    def _read_record(self, key: str, path: Path) -> CacheEntry | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheReadCorruptError(str(path), str(e), key=key) from e

        try:
            return CacheEntry.from_record(key, json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            raise CacheReadCorruptError(str(path), str(e), key=key) from e

    def _write_record(self, path: Path, entry: CacheEntry) -> None:
        payload = json.dumps(entry.to_record(), ensure_ascii=False, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".", suffix=TEMP_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def _remove_file(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            self._log.error(f"Error deleting cache file {path}: {e}")
            return False

    def _record_files(self) -> list[Path]:
        try:
            return sorted(self._dir.glob(f"*{RECORD_SUFFIX}"))
        except OSError as e:
            self._log.error(f"Error listing cache directory {self._dir}: {e}")
            return []

    def _clear_files(self) -> int:
        removed = 0
        for path in self._record_files() + sorted(self._dir.glob(f".*{TEMP_SUFFIX}")):
            if self._remove_file(path):
                removed += 1
        return removed

    def _sweep_files(self, now: float) -> tuple[int, int]:
        """Delete expired and corrupt records; returns (removed, corrupt)."""
        removed = corrupt = 0
        for path in self._record_files():
            try:
                entry = self._read_record(path.stem, path)
            except CacheReadCorruptError as e:
                corrupt += 1
                self._log.warning(f"Deleting corrupt cache file: {e}")
                if self._remove_file(path):
                    removed += 1
                continue

            if entry is not None and entry.is_expired(now, self._ttl):
                if self._remove_file(path):
                    removed += 1
                    self._log.info(f"Cleaned expired cache: {path.name}")
        return removed, corrupt
