"""Content cache: rendered output for ``@cache`` blocks.

Unlike the compiled cache, which stores executable templates, the
content cache stores *rendered* strings under user-chosen keys with a TTL
and optional tags for bulk invalidation:

    @cache(f'sidebar:{user.id}', 600, tags=['nav'])
        ...expensive markup...
    @endcache

    env.content_cache.flush_tag('nav')   # every entry tagged 'nav' misses next time

A TTL of ``None`` or ``0`` means "forever", never "do not cache".

Thread-Safety:
All operations take an internal lock. Producers run outside the lock, so
two threads missing the same key may both produce; the last write wins.
Producer exceptions propagate to the caller and nothing is stored.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    value: str
    expires_at: float | None
    tags: frozenset[str]

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ContentCache:
    """In-memory TTL cache of rendered content with tag-based invalidation.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)

    Example:
            >>> cache = ContentCache()
            >>> cache.remember("k", 60, lambda: "rendered")
            'rendered'
            >>> cache.remember("k", 60, lambda: "never called")
            'rendered'
    """

    __slots__ = ("_clock", "_entries", "_lock", "_tag_index")

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._tag_index: dict[str, set[str]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            self._remove(key)
            return None
        return entry

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live(key)
            return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def put(self, key: str, value: str, ttl: float | None = None, *, tags: Iterable[str] | None = None) -> None:
        """Store ``value``; ``ttl`` of None or 0 stores it forever."""
        expires_at = self._clock() + ttl if ttl else None
        if isinstance(tags, str):
            tags = (tags,)
        tag_set = frozenset(str(tag) for tag in tags or ())
        with self._lock:
            self._remove(key)
            self._entries[key] = _Entry(value, expires_at, tag_set)
            for tag in tag_set:
                self._tag_index.setdefault(tag, set()).add(key)

    def remember(
        self,
        key: str,
        ttl: float | None,
        producer: Callable[[], str],
        *,
        tags: Iterable[str] | None = None,
    ) -> str:
        """Return the cached value for ``key``, producing and storing it on a miss."""
        with self._lock:
            entry = self._live(key)
            if entry is not None:
                return entry.value
        logger.debug("Content cache miss for %r", key)
        value = producer()
        self.put(key, value, ttl, tags=tags)
        return value

    def forever(self, key: str, producer: Callable[[], str], *, tags: Iterable[str] | None = None) -> str:
        return self.remember(key, None, producer, tags=tags)

    def forget(self, key: str) -> bool:
        """Drop ``key``; return True if it was present."""
        with self._lock:
            present = key in self._entries
            self._remove(key)
            return present

    def flush_tag(self, tag: str) -> int:
        """Drop every entry stored under ``tag``; return how many were dropped."""
        with self._lock:
            keys = list(self._tag_index.get(tag, ()))
            for key in keys:
                self._remove(key)
        logger.debug("Flushed %d content cache entries tagged %r", len(keys), tag)
        return len(keys)

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()

    def tags(self, *tags: str) -> TaggedCache:
        """View of this cache that stores under, and flushes by, ``tags``."""
        return TaggedCache(self, tags)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for entry in self._entries.values() if not entry.expired(now))

    def __repr__(self) -> str:
        return f"<ContentCache entries={len(self)}>"


class TaggedCache:
    """A ContentCache bound to a tag set.

    Example:
            >>> nav = env.content_cache.tags("nav", "menus")
            >>> nav.remember("main-menu", 3600, build_menu)
            >>> nav.flush()   # drops every entry tagged 'nav' or 'menus'
    """

    __slots__ = ("_cache", "_tags")

    def __init__(self, cache: ContentCache, tags: Iterable[str]):
        self._cache = cache
        self._tags = tuple(tags)

    def remember(self, key: str, ttl: float | None, producer: Callable[[], str]) -> str:
        return self._cache.remember(key, ttl, producer, tags=self._tags)

    def forever(self, key: str, producer: Callable[[], str]) -> str:
        return self._cache.remember(key, None, producer, tags=self._tags)

    def put(self, key: str, value: str, ttl: float | None = None) -> None:
        self._cache.put(key, value, ttl, tags=self._tags)

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def flush(self) -> int:
        return sum(self._cache.flush_tag(tag) for tag in self._tags)
