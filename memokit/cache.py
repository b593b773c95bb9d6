"""
memokit Cache Strategies

In-process caches behind one interface, used directly or as the storage
layer of ``memoize``/``memoize_async``.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                           CACHE STRATEGIES                               │
    │                                                                          │
    │  Cache Types         Eviction                 Statistics                 │
    │  ├─ MapCache         ├─ none (unbounded)      ├─ hits                    │
    │  ├─ LRUCache         ├─ least recently used   ├─ misses                  │
    │  ├─ TTLCache         ├─ expiry / soonest-due  ├─ evictions               │
    │  └─ WeakCache        └─ key garbage-collected └─ size                    │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Design Principles
─────────────────

    Constant Time: LRU get/set/delete are O(1) through a dict of nodes
    co-indexed with an intrusive doubly-linked list. Nothing scans the list.

    Lazy Expiry: TTL entries are logically gone once their deadline passes
    and physically removed on the next access or periodic sweep.

    Peek vs Touch: ``has`` never changes statistics or recency; ``get`` does.

    Fail Fast: invalid capacities and TTLs raise CacheConfigError at
    construction time.

Usage
─────

    from memokit.cache import LRUCache, TTLCache, create_cache

    cache = LRUCache(max_size=1000)
    cache.set("key", "value")
    value = cache.get("key")

    ttl_cache = TTLCache(ttl=60_000, max_size=1000)   # milliseconds
    ttl_cache.set("key", "value")

    cache = create_cache("lru", max_size=100)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
import weakref
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    TypeVar,
    Union,
)

from memokit.errors import CacheConfigError

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], float]

DEFAULT_SWEEP_INTERVAL = 100


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic_ns() / 1_000_000


# ════════════════════════════════════════════════════════════════════════════
# CACHE STATISTICS
# ════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache counters."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def total_requests(self) -> int:
        """Total cache lookups."""
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        """Cache hit ratio (0.0 - 1.0)."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["hit_ratio"] = round(self.hit_ratio, 4)
        return d


# ════════════════════════════════════════════════════════════════════════════
# CACHE INTERFACE
# ════════════════════════════════════════════════════════════════════════════


class Cache(ABC, Generic[K, V]):
    """Abstract base class for cache implementations."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @abstractmethod
    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Get value from cache, counting a hit or a miss."""
        pass

    @abstractmethod
    def set(self, key: K, value: V) -> None:
        """Set value in cache."""
        pass

    @abstractmethod
    def has(self, key: K) -> bool:
        """Check if key is present without touching statistics."""
        pass

    @abstractmethod
    def delete(self, key: K) -> bool:
        """Delete value from cache; return whether it existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all entries. Statistics are kept."""
        pass

    @abstractmethod
    def _size(self) -> int:
        """Number of live entries reported in statistics."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def get_stats(self) -> CacheStats:
        """Current statistics."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=self._size(),
            )

    def reset_stats(self) -> None:
        """Zero hits, misses and evictions."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0


# ════════════════════════════════════════════════════════════════════════════
# MAP CACHE
# ════════════════════════════════════════════════════════════════════════════


class MapCache(Cache[K, V]):
    """
    Unbounded dictionary cache.

    Never evicts; tracks hits and misses only. Default memoize strategy.
    """

    def __init__(self) -> None:
        super().__init__()
        self._cache: Dict[K, V] = {}

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            if key in self._cache:
                self._hits += 1
                return self._cache[key]
            self._misses += 1
            return default

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._cache[key] = value

    def has(self, key: K) -> bool:
        with self._lock:
            return key in self._cache

    def delete(self, key: K) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def _size(self) -> int:
        return len(self._cache)

    def __len__(self) -> int:
        return len(self._cache)


# ════════════════════════════════════════════════════════════════════════════
# LRU CACHE
# ════════════════════════════════════════════════════════════════════════════


class LRUNode(Generic[K, V]):
    """Doubly-linked list node owned by an LRUCache."""

    __slots__ = ("key", "value", "prev", "next")

    def __init__(self, key: K, value: V):
        self.key = key
        self.value = value
        self.prev: Optional[LRUNode[K, V]] = None
        self.next: Optional[LRUNode[K, V]] = None

    def __repr__(self) -> str:
        return f"LRUNode(key={self.key!r})"


class LRUCache(Cache[K, V]):
    """
    Least Recently Used cache with O(1) operations.

    A dict maps keys to nodes of a doubly-linked list ordered from
    ``head`` (most recently used) to ``tail`` (least recently used).
    ``head`` and ``tail`` are both None iff the cache is empty.

    Example:
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")        # promotes "a"
        cache.set("c", 3)     # evicts "b"
    """

    def __init__(self, max_size: int):
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1:
            raise CacheConfigError("max_size", "LRU cache max_size must be at least 1", max_size)

        super().__init__()
        self._max_size = max_size
        self._cache: Dict[K, LRUNode[K, V]] = {}
        self._head: Optional[LRUNode[K, V]] = None
        self._tail: Optional[LRUNode[K, V]] = None
        logger.debug("Created LRU cache", extra={"context": {"max_size": max_size}})

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Get value, moving it to the head of the list."""
        with self._lock:
            node = self._cache.get(key)
            if node is None:
                self._misses += 1
                return default

            self._hits += 1
            self._move_to_head(node)
            return node.value

    def peek(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Get value without touching statistics or recency."""
        with self._lock:
            node = self._cache.get(key)
            return default if node is None else node.value

    def set(self, key: K, value: V) -> None:
        """Set value, evicting the least recently used entry if full."""
        with self._lock:
            node = self._cache.get(key)
            if node is not None:
                node.value = value
                self._move_to_head(node)
                return

            if len(self._cache) >= self._max_size:
                self._evict_tail()

            node = LRUNode(key, value)
            self._link_at_head(node)
            self._cache[key] = node

    def has(self, key: K) -> bool:
        """Check presence (doesn't update LRU order)."""
        with self._lock:
            return key in self._cache

    def delete(self, key: K) -> bool:
        with self._lock:
            node = self._cache.pop(key, None)
            if node is None:
                return False
            self._unlink(node)
            return True

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._head = None
            self._tail = None

    def keys(self) -> List[K]:
        """Keys from most to least recently used."""
        with self._lock:
            return [node.key for node in self._iter_nodes()]

    def _size(self) -> int:
        return len(self._cache)

    def __len__(self) -> int:
        return len(self._cache)

    def _iter_nodes(self) -> Iterator[LRUNode[K, V]]:
        node = self._head
        while node is not None:
            yield node
            node = node.next

    def _link_at_head(self, node: LRUNode[K, V]) -> None:
        node.prev = None
        node.next = self._head
        if self._head is not None:
            self._head.prev = node
        self._head = node
        if self._tail is None:
            self._tail = node

    def _unlink(self, node: LRUNode[K, V]) -> None:
        if node.prev is not None:
            node.prev.next = node.next
        else:
            self._head = node.next
        if node.next is not None:
            node.next.prev = node.prev
        else:
            self._tail = node.prev
        node.prev = None
        node.next = None

    def _move_to_head(self, node: LRUNode[K, V]) -> None:
        if node is self._head:
            return
        self._unlink(node)
        self._link_at_head(node)

    def _evict_tail(self) -> None:
        node = self._tail
        if node is None:
            return

        self._unlink(node)
        del self._cache[node.key]
        self._evictions += 1
        logger.debug(
            "Evicted least recently used entry",
            extra={"operation": "evict", "context": {"key": node.key}},
        )


# ════════════════════════════════════════════════════════════════════════════
# TTL CACHE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class TTLEntry(Generic[V]):
    """A value with its absolute expiry deadline in milliseconds."""
    value: V
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class TTLCache(Cache[K, V]):
    """
    Cache with Time-To-Live expiration.

    Each entry expires ``ttl`` milliseconds after it was set. Expired
    entries are removed lazily on access and by a sweep every
    ``sweep_interval`` stored entries. With ``max_size`` set, inserting a
    new key into a full cache evicts the entry closest to expiry, whether
    or not it has expired yet.

    Example:
        cache = TTLCache(ttl=5_000)
        cache.set("key", 42)
        cache.get("key")   # 42
        # five seconds later...
        cache.get("key")   # None
    """

    def __init__(
        self,
        ttl: float,
        max_size: Optional[int] = None,
        clock: Optional[Clock] = None,
        sweep_interval: int = DEFAULT_SWEEP_INTERVAL,
    ):
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)) or ttl < 0:
            raise CacheConfigError("ttl", "TTL must be non-negative", ttl)
        if max_size is not None and (
            isinstance(max_size, bool) or not isinstance(max_size, int) or max_size < 1
        ):
            raise CacheConfigError("max_size", "TTL cache max_size must be at least 1", max_size)
        if sweep_interval < 1:
            raise CacheConfigError("sweep_interval", "sweep interval must be at least 1", sweep_interval)

        super().__init__()
        self._ttl = ttl
        self._max_size = max_size
        self._clock: Clock = clock or monotonic_ms
        self._sweep_interval = sweep_interval
        self._cache: Dict[K, TTLEntry[V]] = {}
        logger.debug(
            "Created TTL cache",
            extra={"context": {"ttl": ttl, "max_size": max_size}},
        )

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_size(self) -> Optional[int]:
        return self._max_size

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Get value if present and not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return default

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._evictions += 1
                self._misses += 1
                return default

            self._hits += 1
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Set value with a fresh deadline."""
        with self._lock:
            size = len(self._cache)
            if size > 0 and size % self._sweep_interval == 0:
                self._evict_expired()

            if (
                self._max_size is not None
                and key not in self._cache
                and len(self._cache) >= self._max_size
            ):
                self._evict_soonest()

            self._cache[key] = TTLEntry(value=value, expires_at=self._clock() + self._ttl)

    def has(self, key: K) -> bool:
        """Check if key exists and has not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._evictions += 1
                return False
            return True

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def remaining_ttl(self, key: K) -> Optional[float]:
        """Milliseconds until ``key`` expires, or None if absent or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            remaining = entry.expires_at - self._clock()
            return remaining if remaining >= 0 else None

    def _size(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._cache.values() if not entry.is_expired(now))

    def __len__(self) -> int:
        """Stored entries, including expired ones not yet swept."""
        return len(self._cache)

    def _evict_expired(self) -> int:
        """Remove every expired entry, return count removed."""
        now = self._clock()
        expired = [k for k, e in self._cache.items() if e.is_expired(now)]
        for key in expired:
            del self._cache[key]
        self._evictions += len(expired)
        if expired:
            logger.debug(
                "Swept expired entries",
                extra={"operation": "sweep", "context": {"count": len(expired)}},
            )
        return len(expired)

    def _evict_soonest(self) -> None:
        """Evict the entry with the smallest deadline."""
        if not self._cache:
            return

        key = min(self._cache, key=lambda k: self._cache[k].expires_at)
        del self._cache[key]
        self._evictions += 1
        logger.debug(
            "Evicted entry closest to expiry",
            extra={"operation": "evict", "context": {"key": key}},
        )


# ════════════════════════════════════════════════════════════════════════════
# WEAK CACHE
# ════════════════════════════════════════════════════════════════════════════


class WeakCache(Cache[K, V]):
    """
    Cache keyed by object identity through weak references.

    An entry disappears when its key object is garbage-collected, so the
    cache never keeps keys alive. Keys must support weak references.
    """

    def __init__(self) -> None:
        super().__init__()
        self._cache: "weakref.WeakKeyDictionary[Any, V]" = weakref.WeakKeyDictionary()

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            try:
                value = self._cache[key]
            except (KeyError, TypeError):
                self._misses += 1
                return default
            self._hits += 1
            return value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._cache[key] = value

    def has(self, key: K) -> bool:
        with self._lock:
            try:
                return key in self._cache
            except TypeError:
                return False

    def delete(self, key: K) -> bool:
        with self._lock:
            try:
                del self._cache[key]
            except (KeyError, TypeError):
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def _size(self) -> int:
        return len(self._cache)

    def __len__(self) -> int:
        return len(self._cache)


# ════════════════════════════════════════════════════════════════════════════
# STRATEGY SELECTION
# ════════════════════════════════════════════════════════════════════════════


class CacheStrategy(str, Enum):
    """Cache strategies available to memoize."""
    MAP = "map"
    LRU = "lru"
    TTL = "ttl"


def create_cache(
    strategy: Union[CacheStrategy, str] = CacheStrategy.MAP,
    max_size: Optional[int] = None,
    ttl: Optional[float] = None,
    clock: Optional[Clock] = None,
    sweep_interval: int = DEFAULT_SWEEP_INTERVAL,
) -> Cache[Any, Any]:
    """
    Create a cache for a strategy.

    ``"lru"`` requires ``max_size``; ``"ttl"`` requires ``ttl`` and takes
    ``max_size`` optionally. Missing options raise CacheConfigError.
    """
    try:
        strategy = CacheStrategy(strategy)
    except ValueError:
        raise CacheConfigError(
            "strategy",
            f"unknown cache strategy (expected one of {', '.join(s.value for s in CacheStrategy)})",
            strategy,
        ) from None

    if strategy is CacheStrategy.LRU:
        if max_size is None:
            raise CacheConfigError("max_size", "max_size is required for LRU cache strategy")
        return LRUCache(max_size=max_size)

    if strategy is CacheStrategy.TTL:
        if ttl is None:
            raise CacheConfigError("ttl", "ttl is required for TTL cache strategy")
        return TTLCache(ttl=ttl, max_size=max_size, clock=clock, sweep_interval=sweep_interval)

    return MapCache()


__all__ = [
    "CacheStats",
    "Cache",
    "MapCache",
    "LRUNode",
    "LRUCache",
    "TTLEntry",
    "TTLCache",
    "WeakCache",
    "CacheStrategy",
    "create_cache",
    "monotonic_ms",
]
