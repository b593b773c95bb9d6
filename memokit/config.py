"""
memokit Configuration

Layered settings for cache defaults, key resolution and logging.

Every setting has a dotted path (``cache.default_strategy``), a typed
default and an environment variable. A lookup walks the layers from the
top down and takes the first value it finds:

    ┌───────────────────────────────────────────────┐
    │  env         MEMOKIT_* environment variables   │
    │  override    ConfigManager.set(...)            │
    │  file        YAML files, later files win       │
    │  default     Setting.default                   │
    └───────────────────────────────────────────────┘

Default file search order (later entries take precedence):
    ~/.memokit/config.yaml, config/memokit.yaml, memokit.yaml

Values written through ``set`` or loaded from files are parsed and checked
immediately. Environment values are parsed on read and reported by
``validate``.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from memokit.errors import CacheConfigError, ConfigError

logger = logging.getLogger(__name__)

TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
FALSE_WORDS = frozenset({"0", "false", "no", "off"})

SOURCE_ENV = "env"
SOURCE_OVERRIDE = "override"
SOURCE_FILE = "file"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class Setting:
    """Declaration of one configuration value."""
    path: str
    default: Any
    env_var: str
    description: str
    choices: Optional[Tuple[str, ...]] = None
    minimum: Optional[int] = None

    @property
    def section(self) -> str:
        return self.path.split(".", 1)[0]

    @property
    def name(self) -> str:
        return self.path.split(".", 1)[1]

    def parse(self, raw: Any) -> Any:
        """Convert ``raw`` to this setting's type; strings are accepted for every type."""
        kind = type(self.default)

        if isinstance(raw, str):
            text = raw.strip()
            if kind is str:
                return text.lower() if self.choices else text
            if kind is bool:
                word = text.lower()
                if word in TRUE_WORDS:
                    return True
                if word in FALSE_WORDS:
                    return False
                raise CacheConfigError(self.path, "expected a boolean", raw)
            try:
                return int(text)
            except ValueError:
                raise CacheConfigError(self.path, "expected an integer", raw) from None

        if kind is int and (isinstance(raw, bool) or not isinstance(raw, int)):
            raise CacheConfigError(self.path, "expected an integer", raw)
        if kind is not int and not isinstance(raw, kind):
            raise CacheConfigError(self.path, f"expected {kind.__name__}", raw)
        return raw

    def problem(self, value: Any) -> Optional[str]:
        """Describe why ``value`` is out of range, or None when it is acceptable."""
        if self.choices is not None and value not in self.choices:
            return f"must be one of {', '.join(self.choices)}"
        if self.minimum is not None and value < self.minimum:
            return f"must be at least {self.minimum}"
        return None

    def describe(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "type": type(self.default).__name__,
            "default": self.default,
            "env_var": self.env_var,
            "description": self.description,
        }
        if self.choices is not None:
            info["choices"] = list(self.choices)
        if self.minimum is not None:
            info["minimum"] = self.minimum
        return info


SETTINGS: Tuple[Setting, ...] = (
    Setting(
        "cache.default_strategy", "map", "MEMOKIT_DEFAULT_STRATEGY",
        "Strategy memoize uses when none is given",
        choices=("map", "lru", "ttl"),
    ),
    Setting(
        "cache.default_max_size", 0, "MEMOKIT_DEFAULT_MAX_SIZE",
        "Capacity memoize uses when none is given (0 leaves it unset)",
        minimum=0,
    ),
    Setting(
        "cache.default_ttl_ms", -1, "MEMOKIT_DEFAULT_TTL_MS",
        "TTL in milliseconds memoize uses when none is given (-1 leaves it unset)",
        minimum=-1,
    ),
    Setting(
        "cache.sweep_interval", 100, "MEMOKIT_SWEEP_INTERVAL",
        "TTL caches drop expired entries every N stored entries",
        minimum=1,
    ),
    Setting(
        "keys.max_depth", 10, "MEMOKIT_KEY_MAX_DEPTH",
        "Nesting depth serialized into cache keys",
        minimum=0,
    ),
    Setting(
        "keys.include_functions", False, "MEMOKIT_KEY_INCLUDE_FUNCTIONS",
        "Put callable names into cache keys",
    ),
    Setting(
        "observability.log_level", "warning", "MEMOKIT_LOG_LEVEL",
        "Level of the memokit logger",
        choices=("debug", "info", "warning", "error", "critical"),
    ),
    Setting(
        "observability.log_format", "json", "MEMOKIT_LOG_FORMAT",
        "Log line format",
        choices=("json", "text"),
    ),
)

_BY_PATH: Dict[str, Setting] = {s.path: s for s in SETTINGS}
SECTIONS: Tuple[str, ...] = tuple(dict.fromkeys(s.section for s in SETTINGS))


def lookup_setting(path: str) -> Setting:
    """Find a setting by dotted path."""
    try:
        return _BY_PATH[path]
    except KeyError:
        if path in SECTIONS:
            raise ConfigError(f"{path} is a section, not a setting") from None
        raise ConfigError(f"Unknown config key: {path}") from None


def _flatten(data: Mapping[str, Any], origin: str) -> Iterator[Tuple[str, Any]]:
    """Yield (dotted path, value) pairs from a nested section mapping."""
    for section, values in data.items():
        if section not in SECTIONS:
            raise ConfigError(f"Unknown config key: {section} ({origin})")
        if not isinstance(values, Mapping):
            raise ConfigError(f"Config section {section} must be a mapping ({origin})")
        for name, value in values.items():
            yield f"{section}.{name}", value


class MemokitConfig:
    """Resolved view over the override, file and default layers."""

    def __init__(self) -> None:
        self._overrides: Dict[str, Any] = {}
        self._file_values: Dict[str, Any] = {}

    def get(self, path: str) -> Any:
        value, _ = self.resolve(path)
        return value

    def source(self, path: str) -> str:
        """Name of the layer the current value of ``path`` comes from."""
        _, layer = self.resolve(path)
        return layer

    def resolve(self, path: str) -> Tuple[Any, str]:
        setting = lookup_setting(path)
        raw = os.environ.get(setting.env_var)
        if raw is not None:
            return setting.parse(raw), SOURCE_ENV
        if path in self._overrides:
            return self._overrides[path], SOURCE_OVERRIDE
        if path in self._file_values:
            return self._file_values[path], SOURCE_FILE
        return setting.default, SOURCE_DEFAULT

    def override(self, path: str, raw: Any) -> Any:
        """Store a runtime value for ``path`` and return it parsed."""
        self._overrides[path] = self._checked(lookup_setting(path), raw)
        return self._overrides[path]

    def merge(self, data: Mapping[str, Any], origin: str) -> List[str]:
        """Apply the values of one config file; return the paths it set."""
        staged = {}
        for path, raw in _flatten(data, origin):
            staged[path] = self._checked(lookup_setting(path), raw)
        self._file_values.update(staged)
        return list(staged)

    def section(self, name: str) -> Dict[str, Any]:
        if name not in SECTIONS:
            raise ConfigError(f"Unknown config section: {name}")
        return {s.name: self.get(s.path) for s in SETTINGS if s.section == name}

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: self.section(name) for name in SECTIONS}

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def problems(self) -> List[str]:
        """Check every setting's effective value, environment included."""
        found = []
        for setting in SETTINGS:
            try:
                value = self.get(setting.path)
            except CacheConfigError as e:
                found.append(f"{setting.path}: {e.message} (from {setting.env_var})")
                continue
            reason = setting.problem(value)
            if reason:
                found.append(f"{setting.path}: {reason}, got {value!r}")
        return found

    @staticmethod
    def _checked(setting: Setting, raw: Any) -> Any:
        value = setting.parse(raw)
        reason = setting.problem(value)
        if reason:
            raise CacheConfigError(setting.path, reason, value)
        return value


class ConfigManager:
    """
    Owns the active MemokitConfig and the files it was loaded from.

    Obtain the shared instance with ``get_config_manager()``.
    """

    def __init__(self) -> None:
        self._config = MemokitConfig()
        self._files: List[Path] = []

    @property
    def config(self) -> MemokitConfig:
        return self._config

    @property
    def loaded_files(self) -> List[Path]:
        return list(self._files)

    @staticmethod
    def search_paths() -> List[Path]:
        """Default config files, lowest precedence first."""
        return [
            Path.home() / ".memokit" / "config.yaml",
            Path("config") / "memokit.yaml",
            Path("memokit.yaml"),
        ]

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Merge a YAML file into the file layer."""
        path = Path(path)
        try:
            text = path.read_text()
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {path}") from None

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {path}")

        applied = self._config.merge(data, str(path))
        self._files.append(path)
        logger.debug(
            "Loaded configuration file",
            extra={"operation": "config.load", "context": {"path": str(path), "keys": applied}},
        )

    def load_defaults(self) -> List[Path]:
        """Load whichever default config files exist; return them."""
        found = [p for p in self.search_paths() if p.is_file()]
        for path in found:
            self.load_from_file(path)
        return found

    def get(self, path: str) -> Any:
        """Value of a setting, or a dict of values for a section name."""
        if path in SECTIONS:
            return self._config.section(path)
        return self._config.get(path)

    def set(self, path: str, value: Any) -> Any:
        """Override a setting for this process; strings are parsed."""
        return self._config.override(path, value)

    def validate(self) -> List[str]:
        return self._config.problems()

    def export_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Dict[str, Any]] = {name: {} for name in SECTIONS}
        for setting in SETTINGS:
            properties[setting.section][setting.name] = setting.describe()
        return {"properties": properties}

    def reset(self) -> None:
        """Back to defaults with no files loaded."""
        self._config = MemokitConfig()
        self._files = []


_manager: Optional[ConfigManager] = None
_manager_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """Shared configuration manager."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = ConfigManager()
        return _manager


def get_config() -> MemokitConfig:
    """Active configuration."""
    return get_config_manager().config
