"""
memokit Memoization

Wraps functions so repeated calls with equal arguments reuse a cached
result. The wrapped function keeps working as a plain function (and as a
method) and gains cache controls:

    fn.clear()            drop every cached result
    fn.delete(*args)      drop the result for one argument list
    fn.get_stats()        CacheStats of the underlying cache
    fn.reset_stats()      zero hits, misses and evictions
    fn.cache              the underlying Cache

Usage
─────

    @memoize
    def add(a, b):
        return a + b

    @memoize(strategy="lru", max_size=100)
    def load_user(user_id):
        ...

    @memoize_async(strategy="ttl", ttl=60_000)
    async def fetch(url):
        ...

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from memokit.cache import Cache, CacheStrategy, create_cache
from memokit.config import get_config
from memokit.errors import CacheConfigError
from memokit.keys import (
    KeyResolver,
    KeyResolverOptions,
    create_key_resolver,
    resolve_key,
    resolver_options,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnHit = Callable[[str, Any], None]
OnMiss = Callable[[str], None]

KWARGS_SEPARATOR = "|**"


# ════════════════════════════════════════════════════════════════════════════
# SETUP
# ════════════════════════════════════════════════════════════════════════════


def _build_cache(
    strategy: Optional[Union[CacheStrategy, str]],
    max_size: Optional[int],
    ttl: Optional[float],
) -> Cache[str, Any]:
    """Create the cache for a memoized function, filling gaps from configuration."""
    config = get_config()

    if strategy is None:
        strategy = config.get("cache.default_strategy")
    if max_size is None and config.get("cache.default_max_size") > 0:
        max_size = config.get("cache.default_max_size")
    if ttl is None and config.get("cache.default_ttl_ms") >= 0:
        ttl = config.get("cache.default_ttl_ms")

    try:
        cache = create_cache(
            strategy,
            max_size=max_size,
            ttl=ttl,
            sweep_interval=config.get("cache.sweep_interval"),
        )
    except CacheConfigError as e:
        logger.error(
            "Invalid memoize options: %s",
            e,
            extra={"operation": "memoize", "context": {"strategy": str(strategy), "field": e.field}},
        )
        raise

    logger.debug(
        "Memoizing with %s cache",
        type(cache).__name__,
        extra={"operation": "memoize", "context": {"max_size": max_size, "ttl": ttl}},
    )
    return cache


class CallKeyer:
    """Positional arguments through the resolver, keyword arguments with its options."""

    def __init__(self, resolver: KeyResolver):
        self.resolver = resolver
        self.options: KeyResolverOptions = resolver_options(resolver)

    def __call__(self, args: Sequence[Any], kwargs: Dict[str, Any]) -> str:
        key = self.resolver(list(args))
        if kwargs:
            key += KWARGS_SEPARATOR + resolve_key([kwargs], self.options)
        return key


def _attach_controls(
    wrapper: Callable[..., Any],
    cache: Cache[str, Any],
    key_for: CallKeyer,
    on_clear: Optional[Callable[[], None]] = None,
    on_delete: Optional[Callable[[str], None]] = None,
) -> None:
    def clear() -> None:
        cache.clear()
        if on_clear:
            on_clear()

    def delete(*args: Any, **kwargs: Any) -> bool:
        key = key_for(args, kwargs)
        if on_delete:
            on_delete(key)
        return cache.delete(key)

    wrapper.cache = cache  # type: ignore[attr-defined]
    wrapper.clear = clear  # type: ignore[attr-defined]
    wrapper.delete = delete  # type: ignore[attr-defined]
    wrapper.get_stats = cache.get_stats  # type: ignore[attr-defined]
    wrapper.reset_stats = cache.reset_stats  # type: ignore[attr-defined]


# ════════════════════════════════════════════════════════════════════════════
# MEMOIZE
# ════════════════════════════════════════════════════════════════════════════


def memoize(
    fn: Optional[Callable[..., T]] = None,
    *,
    strategy: Optional[Union[CacheStrategy, str]] = None,
    max_size: Optional[int] = None,
    ttl: Optional[float] = None,
    key_resolver: Optional[KeyResolver] = None,
    on_hit: Optional[OnHit] = None,
    on_miss: Optional[OnMiss] = None,
) -> Any:
    """
    Memoize a function, caching results by argument list.

    Strategy options are checked here, so ``memoize(fn, strategy="lru")``
    without ``max_size`` raises CacheConfigError immediately rather than on
    the first call. A cached ``None`` counts as a hit.

    Example:
        square = memoize(lambda x: x * x)

        @memoize(strategy="lru", max_size=100)
        def load(user_id): ...

        load.get_stats().hits
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        cache = _build_cache(strategy, max_size, ttl)
        key_for = CallKeyer(key_resolver or create_key_resolver())

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            key = key_for(args, kwargs)
            cached = cache.get(key)

            if cached is not None:
                if on_hit:
                    on_hit(key, cached)
                return cached

            # Stored None is a hit, not a miss
            if cache.has(key):
                if on_hit:
                    on_hit(key, None)
                return None  # type: ignore[return-value]

            if on_miss:
                on_miss(key)
            result = func(*args, **kwargs)
            cache.set(key, result)
            return result

        _attach_controls(wrapper, cache, key_for)
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator


# ════════════════════════════════════════════════════════════════════════════
# MEMOIZE ASYNC
# ════════════════════════════════════════════════════════════════════════════


def memoize_async(
    fn: Optional[Callable[..., Awaitable[T]]] = None,
    *,
    strategy: Optional[Union[CacheStrategy, str]] = None,
    max_size: Optional[int] = None,
    ttl: Optional[float] = None,
    key_resolver: Optional[KeyResolver] = None,
    on_hit: Optional[OnHit] = None,
    on_miss: Optional[OnMiss] = None,
) -> Any:
    """
    Memoize a coroutine function with in-flight deduplication.

    Concurrent calls with the same key share one running task, so the
    wrapped function runs at most once per key at a time. Failures reach
    every waiter and are never cached; the next call runs the function
    again.

    Example:
        @memoize_async(strategy="ttl", ttl=60_000)
        async def fetch_user(user_id):
            ...

        a, b = await asyncio.gather(fetch_user(1), fetch_user(1))  # one fetch
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        cache = _build_cache(strategy, max_size, ttl)
        key_for = CallKeyer(key_resolver or create_key_resolver())
        pending: Dict[str, "asyncio.Future[T]"] = {}

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            key = key_for(args, kwargs)
            cached = cache.get(key)

            if cached is not None:
                if on_hit:
                    on_hit(key, cached)
                return cached

            if cache.has(key):
                if on_hit:
                    on_hit(key, None)
                return None  # type: ignore[return-value]

            in_flight = pending.get(key)
            if in_flight is not None:
                if on_hit:
                    on_hit(key, in_flight)
                # A cancelled waiter must not cancel the shared call
                return await asyncio.shield(in_flight)

            if on_miss:
                on_miss(key)

            task = asyncio.ensure_future(func(*args, **kwargs))
            pending[key] = task

            def settle(done: "asyncio.Future[T]") -> None:
                # Runs before any shielded caller resumes
                if pending.get(key) is not done:
                    return
                del pending[key]
                if not done.cancelled() and done.exception() is None:
                    cache.set(key, done.result())

            task.add_done_callback(settle)
            # Cancelling this caller leaves the task running for waiters
            return await asyncio.shield(task)

        def drop_pending(key: str) -> None:
            pending.pop(key, None)

        _attach_controls(wrapper, cache, key_for, on_clear=pending.clear, on_delete=drop_pending)
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator


__all__ = [
    "CallKeyer",
    "memoize",
    "memoize_async",
]
