"""Configuration management.

Sources, lowest priority first:
    DEFAULT_CONFIG -> YAML file (TABMUX_CONFIG_PATH or --config) -> env overrides -> CLI overrides

`.env` is loaded at import time so `${VAR}` expansion and env overrides see it.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from tabmux.constants import DEFAULT_FOLLOW_THRESHOLD, DEFAULT_RETENTION, DEFAULT_VIEWPORT_HEIGHT
from tabmux.core.types import CommandSpec
from tabmux.errors import ConfigError

# Load .env (allow override for tests)
_env_path = os.getenv("TABMUX_ENV_PATH")
_dotenv_path = Path(_env_path).expanduser() if _env_path else Path.cwd() / ".env"

load_dotenv(_dotenv_path)


@dataclass
class MuxConfig:
    """Typed multiplexer configuration."""

    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    retention: int = DEFAULT_RETENTION
    follow_threshold: int = DEFAULT_FOLLOW_THRESHOLD
    commands: list[CommandSpec] = field(default_factory=list)


# Default configuration values (single source of truth)
DEFAULT_CONFIG: dict[str, object] = {
    "viewport_height": DEFAULT_VIEWPORT_HEIGHT,
    "retention": DEFAULT_RETENTION,
    "follow_threshold": DEFAULT_FOLLOW_THRESHOLD,
    "commands": [],
}

# Env var -> config key for scalar overrides
_ENV_OVERRIDES = {
    "TABMUX_VIEWPORT_HEIGHT": "viewport_height",
    "TABMUX_RETENTION": "retention",
    "TABMUX_FOLLOW_THRESHOLD": "follow_threshold",
}


def expand_env_vars(config: object) -> object:
    """Recursively replace ${VAR} patterns with environment variable values.

    Unknown variables are left untouched.
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Deep merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def _positive_int(raw: dict[str, object], key: str, minimum: int = 1) -> int:
    value = raw[key]
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from e
    if number < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}, got {number}")
    return number


def _parse_command(item: object) -> CommandSpec:
    """Parse one `commands` entry.

    Accepts a command-line string or a dict with command/args/cwd/env/merge_stderr/name.
    """
    if isinstance(item, str):
        try:
            return CommandSpec.from_string(item)
        except ValueError as e:
            raise ConfigError(f"Invalid command entry {item!r}: {e}") from e

    if not isinstance(item, dict):
        raise ConfigError(f"Invalid commands entry type: {type(item)}")
    if not item.get("command"):
        raise ConfigError(f"Command entry is missing 'command': {item!r}")

    args = item.get("args") or []
    if not isinstance(args, list):
        raise ConfigError(f"'args' must be a list: {item!r}")
    env = item.get("env")
    if env is not None and not isinstance(env, dict):
        raise ConfigError(f"'env' must be a mapping: {item!r}")

    return CommandSpec(
        command=str(item["command"]),
        args=tuple(str(arg) for arg in args),
        cwd=str(item["cwd"]) if item.get("cwd") else None,
        env={str(k): str(v) for k, v in env.items()} if env else None,
        merge_stderr=bool(item.get("merge_stderr", True)),
        name=str(item["name"]) if item.get("name") else None,
    )


def _build_config(raw: dict[str, object]) -> MuxConfig:
    """Build typed MuxConfig from raw dict with type conversion."""
    commands_raw = raw.get("commands") or []
    if not isinstance(commands_raw, list):
        raise ConfigError("'commands' must be a list")

    return MuxConfig(
        viewport_height=_positive_int(raw, "viewport_height"),
        retention=_positive_int(raw, "retention"),
        follow_threshold=_positive_int(raw, "follow_threshold", minimum=0),
        commands=[_parse_command(item) for item in commands_raw],
    )


def _read_config_file(config_path: Path) -> dict[str, object]:
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f)  # type: ignore[misc]
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if user_config is None:
        return {}
    if not isinstance(user_config, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")
    return expand_env_vars(user_config)  # type: ignore[return-value]


def load_config(config_path: str | Path | None = None, overrides: dict[str, object] | None = None) -> MuxConfig:
    """Load configuration from defaults, optional YAML file, env and explicit overrides.

    Args:
        config_path: YAML file path; falls back to TABMUX_CONFIG_PATH when omitted
        overrides: Already-parsed values (e.g. from CLI flags); None values are ignored

    Returns:
        Typed MuxConfig

    Raises:
        ConfigError: If the file is missing or any value is invalid
    """
    merged = dict(DEFAULT_CONFIG)

    path_value = config_path or os.getenv("TABMUX_CONFIG_PATH")
    if path_value:
        merged = _deep_merge(merged, _read_config_file(Path(path_value).expanduser()))

    for env_name, key in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            merged[key] = env_value

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    return _build_config(merged)
