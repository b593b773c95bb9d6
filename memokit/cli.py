#!/usr/bin/env python3
"""
memokit CLI

Inspect the settings memoize will pick up and preview the cache keys it
will build, without writing any Python.

    memokit config show [--sources]     effective settings
    memokit config get PATH             one setting and the layer it came from
    memokit config set PATH VALUE       check a value (process-local)
    memokit config files                searched and loaded YAML files
    memokit config validate             exit 1 on bad settings
    memokit config schema               every setting with type and default
    memokit key ARGS [--kwargs OBJ]     cache key for a memoized call

Global options: --format json|yaml|text, --config FILE, --quiet.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import yaml

from memokit import __version__
from memokit.config import SETTINGS, ConfigManager, get_config_manager
from memokit.errors import MemokitError

logger = logging.getLogger(__name__)

Command = Callable[[argparse.Namespace, ConfigManager], Any]


class OutputFormat(Enum):
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"

    def render(self, data: Any) -> str:
        if self is OutputFormat.JSON:
            return json.dumps(data, indent=2, default=str)
        if self is OutputFormat.YAML:
            return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip("\n")
        if isinstance(data, dict):
            return "\n".join(f"{path}: {value}" for path, value in _dotted(data))
        return str(data)


def _dotted(data: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Flatten nested dicts into (a.b, value) pairs for text output."""
    for name, value in data.items():
        path = f"{prefix}{name}"
        if isinstance(value, dict) and value:
            yield from _dotted(value, path + ".")
        else:
            yield path, value


class CommandError(MemokitError):
    """A command ran but could not produce a result."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


_JSON_NAMES = {list: "array", dict: "object"}


def _parse_json(raw: str, what: str, kind: type) -> Any:
    expected = f"{what} must be a JSON {_JSON_NAMES[kind]}"
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CommandError(f"{expected}: {e}") from e
    if not isinstance(value, kind):
        raise CommandError(expected)
    return value


# ════════════════════════════════════════════════════════════════════════════
# CONFIG COMMANDS
# ════════════════════════════════════════════════════════════════════════════


def cmd_config_show(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    if not args.sources:
        return mgr.config.to_dict()
    shown: Dict[str, Dict[str, Any]] = {}
    for setting in SETTINGS:
        value, layer = mgr.config.resolve(setting.path)
        shown.setdefault(setting.section, {})[setting.name] = {"value": value, "source": layer}
    return shown


def cmd_config_get(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    value, layer = mgr.config.resolve(args.path)
    return {"path": args.path, "value": value, "source": layer}


def cmd_config_set(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    value = mgr.set(args.path, args.value)
    result = {"path": args.path, "value": value, "source": mgr.config.source(args.path)}
    if result["source"] != "override":
        # An environment variable still wins over the new value
        result["effective"] = mgr.get(args.path)
    return result


def cmd_config_files(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    loaded = {str(p) for p in mgr.loaded_files}
    return {
        "loaded": [str(p) for p in mgr.loaded_files],
        "searched": [
            {"path": str(p), "exists": p.is_file(), "loaded": str(p) in loaded}
            for p in mgr.search_paths()
        ],
    }


def cmd_config_validate(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    problems = mgr.validate()
    if problems:
        raise CommandError("invalid configuration: " + "; ".join(problems))
    return {"valid": True, "files": [str(p) for p in mgr.loaded_files]}


def cmd_config_schema(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    return mgr.export_schema()


# ════════════════════════════════════════════════════════════════════════════
# KEY COMMAND
# ════════════════════════════════════════════════════════════════════════════


def cmd_key(args: argparse.Namespace, mgr: ConfigManager) -> Any:
    from memokit.keys import create_key_resolver
    from memokit.memoization import CallKeyer

    values = _parse_json(args.args, "arguments", list)
    kwargs = _parse_json(args.kwargs, "--kwargs", dict) if args.kwargs else {}

    keyer = CallKeyer(create_key_resolver(
        max_depth=args.max_depth,
        include_functions=args.include_functions,
    ))
    result: Dict[str, Any] = {"args": values, "key": keyer(values, kwargs)}
    if kwargs:
        result["kwargs"] = kwargs
    result["options"] = {
        "max_depth": keyer.options.max_depth,
        "include_functions": keyer.options.include_functions,
    }
    return result


# ════════════════════════════════════════════════════════════════════════════
# PARSER
# ════════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memokit",
        description="Inspect memokit settings and cache keys",
    )
    parser.add_argument("--version", "-V", action="version", version=f"memokit {__version__}")
    parser.add_argument(
        "--format", "-f",
        choices=[f.value for f in OutputFormat],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("--config", "-c", help="Load this YAML file instead of the default search")
    parser.add_argument("--quiet", "-q", action="store_true", help="Do not print errors")

    commands = parser.add_subparsers(dest="command")

    config = commands.add_parser("config", help="Show, check and export settings")
    config.set_defaults(parser=config)
    config_sub = config.add_subparsers(dest="subcommand")

    show = config_sub.add_parser("show", help="Effective settings")
    show.add_argument("--sources", action="store_true", help="Include the layer each value comes from")
    show.set_defaults(func=cmd_config_show)

    get = config_sub.add_parser("get", help="One setting")
    get.add_argument("path", help="Dotted path, e.g. cache.default_strategy")
    get.set_defaults(func=cmd_config_get)

    set_cmd = config_sub.add_parser("set", help="Parse and check a value for this process")
    set_cmd.add_argument("path")
    set_cmd.add_argument("value")
    set_cmd.set_defaults(func=cmd_config_set)

    config_sub.add_parser("files", help="Config file search").set_defaults(func=cmd_config_files)
    config_sub.add_parser("validate", help="Check every setting").set_defaults(func=cmd_config_validate)
    config_sub.add_parser("schema", help="Describe every setting").set_defaults(func=cmd_config_schema)

    key_cmd = commands.add_parser("key", help="Cache key memoize builds for a call")
    key_cmd.add_argument("args", help='JSON array of positional arguments, e.g. \'[1, {"b": 2}]\'')
    key_cmd.add_argument("--kwargs", help='JSON object of keyword arguments, e.g. \'{"page": 2}\'')
    key_cmd.add_argument("--max-depth", type=int)
    key_cmd.add_argument("--include-functions", action="store_true", default=None)
    key_cmd.set_defaults(func=cmd_key)

    return parser


def _load_config(mgr: ConfigManager, path: Optional[str]) -> None:
    from memokit.observability import configure_logging

    if path:
        mgr.load_from_file(path)
    else:
        mgr.load_defaults()
    configure_logging()


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    func: Optional[Command] = getattr(args, "func", None)
    if func is None:
        getattr(args, "parser", parser).print_help()
        return 0

    mgr = get_config_manager()
    try:
        _load_config(mgr, args.config)
        result = func(args, mgr)
    except CommandError as e:
        if not args.quiet:
            print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except MemokitError as e:
        logger.debug("Command failed", exc_info=True, extra={"operation": f"cli.{args.command}"})
        if not args.quiet:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    print(OutputFormat(args.format).render(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
