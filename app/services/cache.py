"""In-memory PDF cache with TTL, recency-based eviction and a memory budget."""

import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from itertools import count
from threading import Lock
from typing import Any

from app.config import MEBIBYTE, CacheSettings

logger = logging.getLogger(__name__)

# Recognized rendering options and their defaults, in fingerprint order
KEY_OPTION_DEFAULTS: dict[str, Any] = {
    "page_type": "portfolio",
    "format": "A4",
    "landscape": False,
    "include_case_studies": False,
    "content_hash": "",
}

_OPTION_ALIASES = {
    "pageType": "page_type",
    "includeCaseStudies": "include_case_studies",
    "contentHash": "content_hash",
}


def _md5_hex(payload: Any) -> str:
    serialized = json.dumps(payload, default=str, ensure_ascii=False)
    return hashlib.md5(serialized.encode("utf-8"), usedforsecurity=False).hexdigest()


def _normalize_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Apply defaults to rendering options, coercing malformed values to the default."""
    raw: dict[str, Any] = {}
    if isinstance(options, Mapping):
        for name, value in options.items():
            if name in _OPTION_ALIASES:
                raw.setdefault(_OPTION_ALIASES[name], value)
            else:
                raw[name] = value

    normalized = {}
    for name, default in KEY_OPTION_DEFAULTS.items():
        value = raw.get(name)
        if isinstance(default, bool):
            normalized[name] = value if isinstance(value, bool) else default
        elif isinstance(value, str) and (value or name == "content_hash"):
            normalized[name] = value
        else:
            normalized[name] = default
    return normalized


def build_key(portfolio_id: str, template_id: str | None, options: Mapping[str, Any] | None = None) -> str:
    """
    Build the cache fingerprint for a rendering configuration.

    Parameters
    ----------
    portfolio_id : str
        Identifier of the portfolio being rendered.
    template_id : str | None
        Identifier of the template used for rendering.
    options : Mapping[str, Any] | None
        Rendering options. Both ``page_type`` and ``pageType`` spellings are accepted.

    Returns
    -------
    str
        Hex digest that only depends on the normalized inputs.
    """
    key_data = {"portfolio_id": portfolio_id, "template_id": template_id}
    key_data.update(_normalize_options(options))
    return _md5_hex(key_data)


def _read(document: Any, *names: str) -> Any:
    for name in names:
        if isinstance(document, Mapping):
            if name in document:
                return document[name]
        elif hasattr(document, name):
            return getattr(document, name)
    return None


def build_content_hash(content: Any) -> str:
    """
    Hash the parts of a portfolio document that affect its rendered output.

    Returns an empty string when the document cannot be read, which disables
    content-based invalidation for that request instead of failing it.
    """
    try:
        if content is None:
            raise ValueError("portfolio content is missing")

        case_studies = _read(content, "case_studies", "caseStudies") or {}
        relevant = {
            "title": _read(content, "title"),
            "content": _read(content, "content"),
            "styling": _read(content, "styling"),
            "updated_at": _read(content, "updated_at", "updatedAt"),
            "case_studies_count": len(case_studies),
        }
        return _md5_hex(relevant)
    except Exception as e:
        logger.warning("Failed to generate content hash: %s", e, extra={"error": str(e)})
        return ""


@dataclass
class CacheEntry:
    """A cached PDF and its bookkeeping."""

    data: bytes
    size: int
    created_at: float
    expires_at: float
    last_accessed: float
    access_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    # Monotonic touch order, breaks ties between equal ``last_accessed`` values
    sequence: int = 0


@dataclass
class PDFCache:
    """
    In-memory cache for generated PDFs.

    Entries expire after ``ttl_seconds``. When either the entry limit or the
    memory budget is hit, the least recently accessed entries are evicted.
    All operations are serialized by a single lock and never raise; faults are
    counted in ``errors`` and reported as a miss or a failed store.

    Parameters
    ----------
    ttl_seconds : float
        Time-to-live for cache entries in seconds. Default is 5 minutes.
    max_entries : int
        Maximum number of entries to store. Default is 100.
    max_memory_bytes : int
        Upper bound on the total size of cached PDFs. Default is 500 MiB.
    enabled : bool
        When False, lookups always miss and stores are ignored.
    clock : Callable[[], float]
        Time source in seconds. Default is ``time.time``.
    """

    ttl_seconds: float = 300
    max_entries: int = 100
    max_memory_bytes: int = 500 * MEBIBYTE
    enabled: bool = True
    clock: Callable[[], float] = field(default=time.time, repr=False)
    _entries: dict[str, CacheEntry] = field(default_factory=dict, repr=False)
    _current_memory: int = field(default=0, repr=False)
    _stats: dict[str, int] = field(
        default_factory=lambda: {"hits": 0, "misses": 0, "sets": 0, "evictions": 0, "errors": 0},
        repr=False,
    )
    _sequence: Any = field(default_factory=lambda: count(1), repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def __post_init__(self) -> None:
        logger.info(
            "PDF cache initialized (enabled=%s, ttl=%ss, max_entries=%s, max_memory=%sMB)",
            self.enabled,
            self.ttl_seconds,
            self.max_entries,
            self.max_memory_bytes // MEBIBYTE,
        )

    @classmethod
    def from_settings(cls, settings: CacheSettings, clock: Callable[[], float] = time.time) -> "PDFCache":
        return cls(
            ttl_seconds=settings.ttl_seconds,
            max_entries=settings.max_entries,
            max_memory_bytes=settings.max_memory_bytes,
            enabled=settings.enabled,
            clock=clock,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def current_memory(self) -> int:
        """Total size in bytes of all live entries."""
        with self._lock:
            return self._current_memory

    generate_key = staticmethod(build_key)
    generate_content_hash = staticmethod(build_content_hash)

    def get(self, key: str) -> bytes | None:
        """
        Get a cached PDF by key.

        Parameters
        ----------
        key : str
            Fingerprint built with :func:`build_key`.

        Returns
        -------
        bytes | None
            The cached PDF bytes if found and not expired, None otherwise.
        """
        with self._lock:
            if not self.enabled:
                self._stats["misses"] += 1
                return None

            try:
                entry = self._entries.get(key)
                if entry is None:
                    self._stats["misses"] += 1
                    logger.debug("Cache miss", extra={"key": key})
                    return None

                now = self.clock()
                # Expired entries are dropped on access, not only by the sweep
                if now > entry.expires_at:
                    self._remove(key)
                    self._stats["misses"] += 1
                    logger.debug("Cache entry expired", extra={"key": key})
                    return None

                self._stats["hits"] += 1
                entry.last_accessed = now
                entry.access_count += 1
                entry.sequence = next(self._sequence)

                logger.info(
                    "Cache hit %s (access_count=%d, age=%ds)",
                    key,
                    entry.access_count,
                    round(now - entry.created_at),
                    extra={"key": key, "size_kb": round(entry.size / 1024)},
                )
                return entry.data
            except Exception as e:
                self._stats["errors"] += 1
                logger.error("Cache get error for %s: %s", key, e, extra={"key": key, "error": str(e)})
                return None

    def set(self, key: str, pdf_bytes: bytes, metadata: Mapping[str, Any] | None = None) -> bool:
        """
        Store a PDF in the cache.

        Parameters
        ----------
        key : str
            Fingerprint built with :func:`build_key`.
        pdf_bytes : bytes
            The PDF content to cache.
        metadata : Mapping[str, Any] | None
            Lookup tags such as ``portfolio_id``, ``template_id`` and ``filename``.

        Returns
        -------
        bool
            True if the PDF was stored.
        """
        with self._lock:
            if not self.enabled:
                return False

            try:
                data = bytes(pdf_bytes)
                size = len(data)

                # Overwrite is delete + insert so memory is never double-counted
                self._remove(key)

                if self._current_memory + size > self.max_memory_bytes:
                    logger.warning(
                        "Cache memory limit reached, evicting old entries (current=%dMB, new=%dKB, max=%dMB)",
                        self._current_memory // MEBIBYTE,
                        round(size / 1024),
                        self.max_memory_bytes // MEBIBYTE,
                    )
                    self._evict_for_memory(size)

                if len(self._entries) >= self.max_entries:
                    logger.warning("Cache size limit reached, evicting least recently used entry")
                    self._evict_one()

                now = self.clock()
                entry_metadata = dict(metadata or {})
                entry_metadata.setdefault("portfolio_id", None)
                entry_metadata.setdefault("template_id", None)

                self._entries[key] = CacheEntry(
                    data=data,
                    size=size,
                    created_at=now,
                    expires_at=now + self.ttl_seconds,
                    last_accessed=now,
                    metadata=entry_metadata,
                    sequence=next(self._sequence),
                )
                self._current_memory += size
                self._stats["sets"] += 1

                logger.info(
                    "PDF cached %s (entries=%d, memory=%dMB)",
                    key,
                    len(self._entries),
                    self._current_memory // MEBIBYTE,
                    extra={
                        "key": key,
                        "size_kb": round(size / 1024),
                        "portfolio_id": entry_metadata["portfolio_id"],
                    },
                )
                return True
            except Exception as e:
                self._stats["errors"] += 1
                logger.error("Cache set error for %s: %s", key, e, extra={"key": key, "error": str(e)})
                return False

    def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if something was removed."""
        with self._lock:
            return self._remove(key)

    def has(self, key: str) -> bool:
        """Check for a live entry without touching stats or recency."""
        with self._lock:
            if not self.enabled:
                return False
            entry = self._entries.get(key)
            return entry is not None and self.clock() <= entry.expires_at

    def clear(self) -> int:
        """Clear all entries from the cache. Stats are kept."""
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
            self._current_memory = 0
            logger.info("Cache cleared (%d entries)", cleared, extra={"count": cleared})
            return cleared

    def invalidate_portfolio(self, portfolio_id: str) -> int:
        """
        Remove every entry tagged with ``portfolio_id``.

        Returns
        -------
        int
            Number of entries removed.
        """
        with self._lock:
            keys = [
                key for key, entry in self._entries.items() if entry.metadata.get("portfolio_id") == portfolio_id
            ]
            for key in keys:
                self._remove(key)

            logger.info(
                "Portfolio cache invalidated for %s (%d entries)",
                portfolio_id,
                len(keys),
                extra={"portfolio_id": portfolio_id, "count": len(keys)},
            )
            return len(keys)

    def cleanup_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        with self._lock:
            now = self.clock()
            expired_keys = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired_keys:
                self._remove(key)

            if expired_keys:
                logger.info("Cleaned %d expired entries", len(expired_keys), extra={"count": len(expired_keys)})
            return len(expired_keys)

    sweep_expired = cleanup_expired

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns
        -------
        dict
            Counters, hit rate (percent), entry count and memory usage.
        """
        with self._lock:
            stats: dict[str, Any] = dict(self._stats)
            lookups = stats["hits"] + stats["misses"]
            stats["hit_rate"] = round(stats["hits"] / lookups * 100, 2) if lookups else 0.0
            stats["size"] = len(self._entries)
            stats["max_entries"] = self.max_entries
            stats["memory_used_bytes"] = self._current_memory
            stats["memory_used_mb"] = round(self._current_memory / MEBIBYTE, 2)
            stats["max_memory_mb"] = round(self.max_memory_bytes / MEBIBYTE, 2)
            stats["ttl_seconds"] = self.ttl_seconds
            stats["enabled"] = self.enabled
            return stats

    def get_cache_metadata(self) -> list[dict[str, Any]]:
        """List every entry for monitoring endpoints."""
        with self._lock:
            now = self.clock()
            return [
                {
                    "key": key,
                    "size_kb": round(entry.size / 1024),
                    "age_minutes": round((now - entry.created_at) / 60),
                    "access_count": entry.access_count,
                    "portfolio_id": entry.metadata.get("portfolio_id"),
                    "template_id": entry.metadata.get("template_id"),
                }
                for key, entry in self._entries.items()
            ]

    def _remove(self, key: str) -> bool:
        """Single removal path; caller holds the lock."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False

        self._current_memory -= entry.size
        logger.debug("Cache entry deleted", extra={"key": key})
        return True

    def _eviction_order(self) -> list[str]:
        return sorted(
            self._entries,
            key=lambda k: (self._entries[k].last_accessed, self._entries[k].sequence),
        )

    def _evict_for_memory(self, required: int) -> None:
        """Evict least recently accessed entries until at least ``required`` bytes were freed."""
        freed = 0
        for key in self._eviction_order():
            if freed >= required:
                break
            freed += self._entries[key].size
            self._remove(key)
            self._stats["evictions"] += 1

        logger.info("Evicted old entries (freed=%dKB, required=%dKB)", round(freed / 1024), round(required / 1024))

    def _evict_one(self) -> None:
        order = self._eviction_order()
        if order:
            self._remove(order[0])
            self._stats["evictions"] += 1
            logger.debug("Evicted least recently used entry", extra={"key": order[0]})
