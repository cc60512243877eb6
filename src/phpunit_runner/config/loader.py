#
# config/loader.py
#
"""
Loads RunnerConfig from defaults, a TOML file, environment variables and overrides.
"""

import os
import shlex
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
import structlog

from phpunit_runner.exceptions import ConfigurationError

from .models import RunnerConfig

log = structlog.get_logger("config.loader")

CONFIG_TABLE = "phpunit"
ENV_PREFIX = "PHPUNIT_RUNNER_"
# Environment variables that may override scalar settings.
ENV_OVERRIDES = ("php", "phpunit", "command", "args", "show_after_execution")


def _read_toml(config_path: Path) -> dict[str, Any]:
    try:
        with config_path.open("rb") as f:
            document = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError("Configuration file not found", str(config_path), e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", str(config_path), e) from e
    except OSError as e:
        raise ConfigurationError(f"Could not read configuration: {e}", str(config_path), e) from e

    table = document.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"'[{CONFIG_TABLE}]' must be a table", str(config_path))
    return table


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in ENV_OVERRIDES:
        value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value is None:
            continue
        layer[key] = shlex.split(value) if key == "args" else value
    return layer


def load_config(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunnerConfig:
    """
    Builds a RunnerConfig. Precedence: overrides > environment > file > defaults.

    Args:
        config_path: Optional TOML file holding a `[phpunit]` table.
        overrides: Explicit values, typically from the command line.
        environ: Environment mapping; defaults to `os.environ`.

    Returns:
        The validated, immutable configuration.

    Raises:
        ConfigurationError: if the file is unreadable or any value is invalid.
    """
    environ = os.environ if environ is None else environ
    layers: dict[str, Any] = {}
    path_str = str(config_path) if config_path else None

    if config_path is not None:
        log.debug("Loading configuration file", path=path_str, emoji_key="load")
        layers.update(_read_toml(config_path))

    layers.update(_env_layer(environ))
    layers.update({key: value for key, value in (overrides or {}).items() if value is not None})

    known = {a.name for a in attrs.fields(RunnerConfig)}
    unknown = sorted(set(layers) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {unknown}", path_str)

    try:
        config = RunnerConfig(**layers)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}", path_str, e) from e

    if config.cwd is not None and not config.cwd.is_absolute() and config_path is not None:
        config = attrs.evolve(config, cwd=(config_path.parent / config.cwd).resolve())

    log.info(
        "Configuration loaded",
        path=path_str or "<defaults>",
        remote=config.is_remote,
        mappings=len(config.paths),
        emoji_key="validate" if config_path else "load",
    )
    return config


# 🔼⚙️
