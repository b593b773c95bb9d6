"""
memokit — In-Process Caching and Memoization

Caches with interchangeable eviction strategies and memoization wrappers
that sit on top of them.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          MEMOIZATION LAYER                               │
    │    memoization.py memoize / memoize_async, in-flight deduplication      │
    │                                                                          │
    │                          CACHE LAYER                                     │
    │    cache.py       MapCache, LRUCache, TTLCache, WeakCache, strategies   │
    │    keys.py        Deterministic argument-list serialization             │
    │                                                                          │
    │                          SUPPORT                                         │
    │    config.py      YAML + environment configuration                      │
    │    observability.py  Structured JSON/text logging                       │
    │    errors.py      Error hierarchy                                       │
    │    cli.py         Configuration and key inspection                      │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Key Resolver: maps a call's arguments to one string. Mappings and sets
    are sorted so insertion order never changes a key.

    Strategy: "map" never evicts, "lru" evicts the least recently used
    entry at capacity, "ttl" expires entries a fixed number of
    milliseconds after they were stored.

    Deduplication: memoize_async runs the wrapped coroutine at most once
    per key at a time; concurrent callers share the in-flight result.

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.3.0"


# Submodules load on first attribute access
def __getattr__(name):
    """Lazy import memokit modules on first access."""

    if name in ("Cache", "CacheStats", "MapCache", "LRUCache", "LRUNode", "TTLCache",
                "TTLEntry", "WeakCache", "CacheStrategy", "create_cache"):
        from memokit import cache
        return getattr(cache, name)

    if name in ("memoize", "memoize_async"):
        from memokit import memoization
        return getattr(memoization, name)

    if name in ("resolve_key", "create_key_resolver", "KeyResolverOptions"):
        from memokit import keys
        return getattr(keys, name)

    if name in ("MemokitError", "ConfigError", "CacheConfigError"):
        from memokit import errors
        return getattr(errors, name)

    if name in ("get_config", "get_config_manager", "ConfigManager", "MemokitConfig"):
        from memokit import config
        return getattr(config, name)

    if name == "configure_logging":
        from memokit import observability
        return observability.configure_logging

    raise AttributeError(f"module 'memokit' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Caches
    "Cache",
    "CacheStats",
    "MapCache",
    "LRUCache",
    "TTLCache",
    "WeakCache",
    "CacheStrategy",
    "create_cache",
    # Memoization
    "memoize",
    "memoize_async",
    # Keys
    "resolve_key",
    "create_key_resolver",
    "KeyResolverOptions",
    # Errors
    "MemokitError",
    "ConfigError",
    "CacheConfigError",
    # Config
    "get_config",
    "get_config_manager",
    "configure_logging",
]
