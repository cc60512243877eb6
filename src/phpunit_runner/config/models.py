#
# config/models.py
#
"""
Attrs-based data models for phpunit-runner configuration.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
from attrs import define, field

log = structlog.get_logger("config.models")

SHOW_AFTER_EXECUTION_CHOICES = ("always", "onFailure", "never")


# --- Validators ---
def _validate_show_after_execution(inst: Any, attr: Any, value: str) -> None:
    """Validator for the output visibility policy."""
    if value not in SHOW_AFTER_EXECUTION_CHOICES:
        raise ValueError(
            f"Invalid {attr.name} '{value}'. Must be one of {list(SHOW_AFTER_EXECUTION_CHOICES)}."
        )


def _validate_paths(inst: Any, attr: Any, value: Mapping[str, str]) -> None:
    """Validator for the local -> remote path table; warns about nested remote roots."""
    for local, remote in value.items():
        if not isinstance(local, str) or not isinstance(remote, str):
            raise ValueError(f"Field '{attr.name}' must map strings to strings, got {local!r}: {remote!r}")
    remotes = [remote for remote in value.values() if remote]
    for i, remote in enumerate(remotes):
        for other in remotes[i + 1 :]:
            if other.startswith(remote) or remote.startswith(other):
                # First registered entry wins; nested roots make later ones unreachable.
                log.warning("Overlapping path mapping entries", first=remote, second=other)


def _to_str_tuple(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _to_optional_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(value)


@define(frozen=True, slots=True)
class RunnerConfig:
    """Resolved settings for running the PHP test runner."""

    php: str | None = field(default=None)
    phpunit: str | None = field(default=None)
    args: tuple[str, ...] = field(default=(), converter=_to_str_tuple)
    # Ordered local -> remote roots; insertion order decides which entry wins.
    paths: dict[str, str] = field(factory=dict, converter=dict, validator=_validate_paths)
    command: str | None = field(default=None)
    env: dict[str, str] = field(factory=dict, converter=dict)
    cwd: Path | None = field(default=None, converter=_to_optional_path)
    clear_output_on_run: bool = field(default=True)
    show_after_execution: str = field(default="onFailure", validator=_validate_show_after_execution)

    @property
    def is_remote(self) -> bool:
        return bool(self.command and self.command.strip())

    def get(self, key: str, default: Any = None) -> Any:
        """Key-value lookup; unset (None) values fall back to `default`."""
        value = getattr(self, key, None)
        return default if value is None else value


# 🔼⚙️
