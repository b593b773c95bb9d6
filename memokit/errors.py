"""
memokit Error Types

Exception hierarchy shared by the cache, memoization and configuration
modules. Configuration problems are raised synchronously at construction or
setup time and are never retried.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from typing import Any


class MemokitError(Exception):
    """Base exception for memokit."""
    pass


class ConfigError(MemokitError):
    """Configuration error."""
    pass


class CacheConfigError(ConfigError, ValueError):
    """Invalid cache or memoize option."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")
