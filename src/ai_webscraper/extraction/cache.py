"""In-memory cache of AI extraction responses with optional JSON persistence.

Entries are keyed by a SHA-256 digest of the page content, the schema, the
provider tag and the extraction options, so identical requests against the
same provider are answered without another API call.  Entries expire after
``max_age`` and the oldest entries are evicted once the cache grows past
``max_entries``.

When ``file_path`` is set the cache is loaded from that file by
:meth:`ResponseCache.initialize` and written back by :meth:`ResponseCache.dispose`
when entries changed.  The file is replaced atomically; its layout is::

    {"version": 1, "entries": {"<key>": {"data": {...}, "timestamp": "...",
                                         "raw_response": "..."}}}
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FILE_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """One cached extraction.

    Attributes:
        data: Parsed extraction result.
        timestamp: UTC time the entry was stored.
        raw_response: Raw provider response text.
    """

    data: dict[str, Any]
    timestamp: datetime
    raw_response: str = ""

    def is_fresh(self, max_age: timedelta, now: datetime) -> bool:
        return now - self.timestamp < max_age

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "raw_response": self.raw_response,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CacheEntry":
        return cls(
            data=dict(payload["data"]),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
            raw_response=payload.get("raw_response", ""),
        )


def make_cache_key(
    content: str,
    schema: Mapping[str, str],
    provider: str,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """Return the SHA-256 hex digest identifying one extraction input."""
    payload = json.dumps(
        {
            "content": content,
            "schema": dict(schema),
            "provider": provider,
            "options": dict(options or {}),
        },
        sort_keys=False,
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    """Shared, lock-guarded response cache.

    Args:
        file_path: Optional JSON file used to persist entries.
        max_age: Entries older than this are misses.  Defaults to one hour.
        max_entries: Size limit; the oldest entries are evicted beyond it.
        clock: Returns the current UTC time.  Injected by tests.
    """

    def __init__(
        self,
        *,
        file_path: Optional[str | Path] = None,
        max_age: timedelta = timedelta(hours=1),
        max_entries: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._file_path = Path(file_path) if file_path else None
        self._max_age = max_age
        self._max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._dirty = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load persisted entries, skipping expired or malformed ones."""
        if self._file_path is None:
            return
        async with self._lock:
            await asyncio.to_thread(self._load)

    async def dispose(self) -> None:
        """Write entries to the cache file if any were stored since the last flush."""
        if self._file_path is None:
            return
        async with self._lock:
            if not self._dirty:
                return
            await asyncio.to_thread(self._save)
            self._dirty = False

    async def clear(self) -> None:
        """Drop every entry and delete the cache file."""
        async with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._dirty = False
            if self._file_path is not None and self._file_path.exists():
                self._file_path.unlink()
        logger.info("extraction: response cache cleared")

    # ------------------------------------------------------------------
    # Lookup and store
    # ------------------------------------------------------------------

    async def get(
        self,
        content: str,
        schema: Mapping[str, str],
        provider: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[CacheEntry]:
        """Return the fresh entry for this input, or ``None``."""
        key = make_cache_key(content, schema, provider, options)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("extraction: cache miss %s", key[:16])
                return None
            if not entry.is_fresh(self._max_age, self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug("extraction: cache entry expired %s", key[:16])
                return None
            self._hits += 1
            logger.debug("extraction: cache hit %s", key[:16])
            return entry

    async def store(
        self,
        content: str,
        schema: Mapping[str, str],
        provider: str,
        data: Mapping[str, Any],
        *,
        raw_response: str = "",
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Cache *data* for this input, evicting expired and excess entries."""
        key = make_cache_key(content, schema, provider, options)
        async with self._lock:
            self._entries[key] = CacheEntry(
                data=dict(data), timestamp=self._clock(), raw_response=raw_response
            )
            self._evict()
            self._dirty = True

    def get_stats(self) -> dict[str, Any]:
        """Return entry counts, hit/miss counters and limits."""
        now = self._clock()
        fresh = sum(1 for entry in self._entries.values() if entry.is_fresh(self._max_age, now))
        return {
            "total_entries": len(self._entries),
            "valid_entries": fresh,
            "expired_entries": len(self._entries) - fresh,
            "hits": self._hits,
            "misses": self._misses,
            "max_age_seconds": self._max_age.total_seconds(),
            "max_entries": self._max_entries,
            "file_path": str(self._file_path) if self._file_path else None,
        }

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internals (called with the lock held)
    # ------------------------------------------------------------------

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(self._max_age, now)]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._entries[k].timestamp)[:overflow]
            for key in oldest:
                del self._entries[key]
            logger.debug("extraction: evicted %d cache entries over the size limit", overflow)

    def _load(self) -> None:
        assert self._file_path is not None
        if not self._file_path.exists():
            logger.debug("extraction: cache file %s does not exist yet", self._file_path)
            return
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
            raw_entries = payload.get("entries", {})
        except (OSError, ValueError, AttributeError) as exc:
            logger.warning("extraction: cannot read cache file %s: %s", self._file_path, exc)
            return

        now = self._clock()
        for key, raw in raw_entries.items():
            try:
                entry = CacheEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("extraction: skipping malformed cache entry %s: %s", key[:16], exc)
                continue
            if entry.is_fresh(self._max_age, now):
                self._entries[key] = entry
        self._evict()
        logger.info("extraction: loaded %d cache entries from %s", len(self._entries), self._file_path)

    def _save(self) -> None:
        assert self._file_path is not None
        payload = {
            "version": _FILE_VERSION,
            "entries": {key: entry.to_dict() for key, entry in self._entries.items()},
        }
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._file_path.with_name(self._file_path.name + ".tmp")
        staging.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        # Readers never see a partially written file.
        staging.replace(self._file_path)
        logger.debug("extraction: wrote %d cache entries to %s", len(self._entries), self._file_path)
