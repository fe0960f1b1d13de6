"""Configuration file loading and merging for puter-ai.

Reads TOML settings from ~/.config/puter-ai/config.toml (global) and
<project>/puter-ai.toml (project). Precedence: CLI > project > global > defaults.
"""

import argparse
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from .errors import ConfigError

PROJECT_CONFIG_NAME = "puter-ai.toml"


# --- Schema ---

CONFIG_KEYS: dict[str, type | tuple[type, ...]] = {
    "model": str,
    "base_url": str,
    "temperature": (int, float),
    "max_tokens": int,
    "max_iterations": int,
    "auto_approve": bool,
    "stream": bool,
    "system_prompt": str,
    "color": bool,
    "quiet": bool,
}

# Config key -> argparse dest (only where they differ)
_CONFIG_TO_ARGPARSE: dict[str, str] = {
    "auto_approve": "auto",
    "system_prompt": "system",
}

# Argparse dest -> hardcoded default
_ARGPARSE_DEFAULTS: dict[str, Any] = {
    "model": None,
    "base_url": None,
    "temperature": None,
    "max_tokens": None,
    "max_iterations": 25,
    "auto": False,
    "stream": False,
    "system": None,
    "color": False,
    "no_color": False,
    "quiet": False,
}


# --- Internal helpers ---


def global_config_dir() -> Path:
    """Return the global config directory.

    PUTER_AI_CONFIG_DIR wins, then XDG_CONFIG_HOME, then ~/.config.
    """
    override = os.environ.get("PUTER_AI_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "puter-ai"
    return Path.home() / ".config" / "puter-ai"


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _validate_config(config: dict, source: str) -> None:
    """Validate value types in a parsed config dict.

    Raises ConfigError for type mismatches. Prints warnings for unknown keys.
    """
    for key, value in config.items():
        if key not in CONFIG_KEYS:
            print(f"warning: {source}: unknown config key {key!r}", file=sys.stderr)
            continue

        expected = CONFIG_KEYS[key]
        # bool is a subclass of int, reject it explicitly for numeric keys.
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got bool"
            )
        if not isinstance(value, expected):
            raise ConfigError(
                f"{source}: {key!r} expected {_type_name(expected)}, got {type(value).__name__}"
            )

    if "max_iterations" in config and config["max_iterations"] < 1:
        raise ConfigError(f"{source}: 'max_iterations' must be at least 1")
    if "max_tokens" in config and config["max_tokens"] < 1:
        raise ConfigError(f"{source}: 'max_tokens' must be at least 1")


def _load_single(path: Path, label: str) -> dict:
    """Load and validate a single TOML config file. Returns empty dict if missing."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{label}: invalid TOML: {e}") from e
    except OSError as e:
        raise ConfigError(f"{label}: cannot read file: {e}") from e

    _validate_config(config, label)
    return {k: v for k, v in config.items() if k in CONFIG_KEYS}


# --- Public API ---


def load_config(project_dir: str | Path | None = None) -> dict:
    """Load and merge global + project config.

    Returns a flat dict containing only the keys actually set in config
    files (no defaults injected).
    """
    global_path = global_config_dir() / "config.toml"
    merged = _load_single(global_path, str(global_path))

    if project_dir is not None:
        project_path = Path(project_dir).resolve() / PROJECT_CONFIG_NAME
        merged.update(_load_single(project_path, str(project_path)))

    return merged


def apply_config_to_args(args: argparse.Namespace, config: dict) -> None:
    """Apply config values to argparse namespace where CLI didn't set a value.

    Unset CLI values are None (or False for store_true flags). After applying
    config keys, remaining unset values are replaced with hardcoded defaults.
    """

    def _is_unset(dest: str) -> bool:
        return getattr(args, dest, None) in (None, False)

    # Special handling for color: single config key controls mutual-exclusive pair
    if "color" in config and _is_unset("color") and _is_unset("no_color"):
        args.color = config["color"]
        args.no_color = not config["color"]

    for key, value in config.items():
        if key == "color":
            continue
        dest = _CONFIG_TO_ARGPARSE.get(key, key)
        if _is_unset(dest):
            setattr(args, dest, value)

    for dest, default in _ARGPARSE_DEFAULTS.items():
        if getattr(args, dest, None) is None:
            setattr(args, dest, default)


def generate_config() -> str:
    """Return a commented-out template config string."""
    lines = [
        "# puter-ai configuration file",
        "# ~/.config/puter-ai/config.toml (global) or <project>/puter-ai.toml",
        "#",
        "# CLI flags override these values. Only uncomment what you need.",
        "# The auth token and default model live in auth.json, see `puter-ai auth`.",
        "",
        "# --- Provider / model ---",
        '# model = "claude-sonnet-4.6"',
        '# base_url = "https://api.puter.com/puterai/openai/v1"',
        "",
        "# --- Generation parameters ---",
        "# temperature = 0.7",
        "# max_tokens = 4096",
        "# stream = false",
        "",
        "# --- Agent behaviour ---",
        "# max_iterations = 25",
        "# auto_approve = false",
        '# system_prompt = "You are a helpful assistant."',
        "",
        "# --- UI ---",
        "# color = true       # true = force color, false = force no-color, absent = auto",
        "# quiet = false",
        "",
    ]
    return "\n".join(lines)
