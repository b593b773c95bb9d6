"""
memokit Key Resolution

Turns a call's argument list into a single deterministic string key.

Rules
─────

    ()                      no arguments
    <arg>                   one argument, serialized alone
    <arg>|<arg>|...         several arguments

    None, True, 1, 2.5      literals
    "text"                  strings are JSON-quoted
    1.50d                   Decimal
    Color.RED               Enum members
    [fn] / [fn:name]        callables (names only with include_functions)
    [1,2] / tuple(1,2)      sequences
    {"a":1,"b":2}           mappings, entries sorted by serialized key
    set{1,2}                sets, items sorted after serialization
    Point{"x":1,"y":2}      dataclasses and plain objects, fields sorted
    datetime(2026-...)      dates and times as ISO strings
    /ab+c/2                 compiled patterns with their flags
    "[max depth]"           nesting deeper than max_depth

Serialization never raises; exotic values fall back to ``str(value)``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import datetime
import json
import re
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Sequence

EMPTY_ARGS_KEY = "()"
ARG_SEPARATOR = "|"
MAX_DEPTH_SENTINEL = '"[max depth]"'

KeyResolver = Callable[[Sequence[Any]], str]


@dataclasses.dataclass(frozen=True)
class KeyResolverOptions:
    """Options for customizing cache key generation."""
    max_depth: int = 10
    include_functions: bool = False


def _callable_name(value: Any) -> str:
    name = getattr(value, "__name__", "") or ""
    if name in ("", "<lambda>"):
        return "anonymous"
    return name


def _sorted_join(items: Sequence[str]) -> str:
    return ",".join(sorted(items))


def _join_pairs(pairs: Sequence[tuple]) -> str:
    return "{" + ",".join(f"{k}:{v}" for k, v in sorted(pairs, key=lambda p: p[0])) + "}"


def _serialize(value: Any, depth: int, options: KeyResolverOptions) -> str:
    if depth > options.max_depth:
        return MAX_DEPTH_SENTINEL

    if value is None:
        return "None"

    # Enum before str/int: str and int enums are instances of both.
    if isinstance(value, Enum):
        return f"{type(value).__name__}.{value.name}"

    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)

    if isinstance(value, (bool, int, float)):
        return repr(value)

    if isinstance(value, Decimal):
        return f"{value}d"

    if isinstance(value, (bytes, bytearray)):
        return repr(value)

    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return f"{type(value).__name__}({value.isoformat()})"

    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/{int(value.flags)}"

    if isinstance(value, list):
        return "[" + ",".join(_serialize(item, depth + 1, options) for item in value) + "]"

    if isinstance(value, tuple):
        return "tuple(" + ",".join(_serialize(item, depth + 1, options) for item in value) + ")"

    if isinstance(value, (set, frozenset)):
        items = [_serialize(item, depth + 1, options) for item in value]
        return f"{type(value).__name__}{{{_sorted_join(items)}}}"

    if isinstance(value, Mapping):
        pairs = [
            (_serialize(k, depth + 1, options), _serialize(v, depth + 1, options))
            for k, v in value.items()
        ]
        return _join_pairs(pairs)

    if isinstance(value, type) or callable(value):
        if options.include_functions:
            return f"[fn:{_callable_name(value)}]"
        return "[fn]"

    if dataclasses.is_dataclass(value):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _serialize_fields(fields, depth, options)

    attrs = getattr(value, "__dict__", None)
    if isinstance(attrs, dict):
        return type(value).__name__ + _serialize_fields(attrs, depth, options)

    try:
        return str(value)
    except Exception:
        return f"<{type(value).__name__}>"


def _serialize_fields(fields: Mapping, depth: int, options: KeyResolverOptions) -> str:
    pairs = [(json.dumps(str(name)), _serialize(v, depth + 1, options)) for name, v in fields.items()]
    return _join_pairs(pairs)


def resolve_key(args: Sequence[Any], options: Optional[KeyResolverOptions] = None) -> str:
    """
    Create a string key from function arguments for cache lookup.

    Objects are serialized consistently regardless of key order, so
    ``resolve_key([{"a": 1, "b": 2}]) == resolve_key([{"b": 2, "a": 1}])``.

    Example:
        resolve_key([1, "hello", {"a": 1}])  # '1|"hello"|{"a":1}'
        resolve_key([[1, 2, 3]])             # '[1,2,3]'
    """
    options = options or KeyResolverOptions()

    if len(args) == 0:
        return EMPTY_ARGS_KEY

    if len(args) == 1:
        return _serialize(args[0], 0, options)

    return ARG_SEPARATOR.join(_serialize(arg, 0, options) for arg in args)


def configured_options() -> KeyResolverOptions:
    """KeyResolverOptions built from the ``keys`` configuration section."""
    from memokit.config import get_config

    config = get_config()
    return KeyResolverOptions(
        max_depth=config.get("keys.max_depth"),
        include_functions=config.get("keys.include_functions"),
    )


def resolver_options(resolver: KeyResolver) -> KeyResolverOptions:
    """Options a resolver was built with, or the configured ones for custom resolvers."""
    options = getattr(resolver, "options", None)
    if isinstance(options, KeyResolverOptions):
        return options
    return configured_options()


def create_key_resolver(
    max_depth: Optional[int] = None,
    include_functions: Optional[bool] = None,
) -> KeyResolver:
    """
    Create a key resolver with pre-configured options.

    Options left as ``None`` come from the ``keys`` configuration section.
    The options are available afterwards as ``resolver.options``.

    Example:
        resolver = create_key_resolver(max_depth=3)
        fn = memoize(expensive, key_resolver=resolver)
    """
    if max_depth is None or include_functions is None:
        configured = configured_options()
        if max_depth is None:
            max_depth = configured.max_depth
        if include_functions is None:
            include_functions = configured.include_functions

    options = KeyResolverOptions(max_depth=max_depth, include_functions=include_functions)

    def resolver(args: Sequence[Any]) -> str:
        return resolve_key(args, options)

    resolver.options = options  # type: ignore[attr-defined]
    return resolver
