# src/phpunit_runner/command.py

"""
Builds the PHPUnit subprocess invocation from configuration and per-run arguments.
"""

import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import TypeAlias

import attrs
import structlog
from attrs import define, field

from phpunit_runner.config import RunnerConfig
from phpunit_runner.paths import PathReplacer

log = structlog.get_logger("command")

DEFAULT_PHP = "php"
DEFAULT_PHPUNIT = "vendor/bin/phpunit"
# Always appended last so the output stays machine-readable.
FORCED_ARGUMENTS = ("--teamcity", "--colors=never")
# Output format, color and verbosity switches the forced flags replace.
DROPPED_OPTIONS = frozenset({"teamcity", "colors", "testdox"})
OPTION_ALIASES = {"c": "configuration"}


def split_arguments(raw: str) -> list[str]:
    """Shell-style split that honors quotes but keeps backslashes literal (Windows paths)."""
    lexer = shlex.shlex(raw, posix=True)
    lexer.whitespace_split = True
    lexer.escape = ""
    lexer.commenters = ""
    return list(lexer)


# --- Execution targets ---
@define(frozen=True, slots=True)
class LocalTarget:
    """Runs PHPUnit on the host; paths need no translation."""

    def resolve_path_context(self) -> PathReplacer:
        return PathReplacer()

    def extra_prefix_arguments(self) -> list[str]:
        return []


@define(frozen=True, slots=True)
class RemoteTarget:
    """Runs PHPUnit through a prefix command such as `docker exec <container>`."""

    command: str = field()
    paths: Mapping[str, str] = field(factory=dict, converter=dict)

    def resolve_path_context(self) -> PathReplacer:
        return PathReplacer.from_mapping(self.paths)

    def extra_prefix_arguments(self) -> list[str]:
        return [token for token in split_arguments(self.command) if token]


ExecutionTarget: TypeAlias = LocalTarget | RemoteTarget


def get_execution_target(config: RunnerConfig) -> ExecutionTarget:
    """Selects the remote target when a prefix command is configured."""
    if config.is_remote:
        log.debug("Using remote execution target", command=config.command, mappings=len(config.paths))
        return RemoteTarget(command=config.command or "", paths=config.paths)
    return LocalTarget()


# --- Argument parsing ---
def _parse_options(tokens: list[str]) -> tuple[list[str], dict[str, list[str | bool]]]:
    """Splits tokens into positionals and options, keeping first-seen option order."""
    positionals: list[str] = []
    options: dict[str, list[str | bool]] = {}

    def add(key: str, value: str | bool) -> None:
        options.setdefault(OPTION_ALIASES.get(key, key), []).append(value)

    def takes_next(index: int) -> bool:
        return index + 1 < len(tokens) and not tokens[index + 1].startswith("-")

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            positionals.extend(tokens[i + 1 :])
            break
        if token.startswith("--") and len(token) > 2:
            key, sep, value = token[2:].partition("=")
            if sep:
                add(key, value)
            elif takes_next(i):
                add(key, tokens[i + 1])
                i += 1
            else:
                add(key, True)
        elif token.startswith("-") and len(token) > 1 and not token[1].isdigit():
            letters = token[1:]
            for letter in letters[:-1]:
                add(letter, True)
            if takes_next(i):
                add(letters[-1], tokens[i + 1])
                i += 1
            else:
                add(letters[-1], True)
        else:
            positionals.append(token)
        i += 1
    return positionals, options


def _format_option(key: str, value: str | bool) -> list[str]:
    if len(key) == 1:
        return [f"-{key}"] if value is True else [f"-{key}", str(value)]
    return [f"--{key}"] if value is True else [f"--{key}={value}"]


@define(frozen=True, slots=True)
class CommandSpec:
    """A fully resolved subprocess invocation."""

    executable: str
    runner_path: str
    arguments: tuple[str, ...]
    prefix: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    path_replacer: PathReplacer = field(factory=PathReplacer)

    @property
    def argv(self) -> list[str]:
        return [*self.prefix, self.executable, self.runner_path, *self.arguments]


@define(frozen=True, slots=True)
class CommandBuilder:
    """
    Assembles `[prefix...] php runner [user args] --teamcity --colors=never`.

    The builder is immutable; `with_arguments` returns a copy carrying the
    per-run argument string.
    """

    config: RunnerConfig = field(factory=RunnerConfig)
    target: ExecutionTarget = field(factory=LocalTarget)
    arguments: str = field(default="", converter=str.strip)

    @classmethod
    def from_config(cls, config: RunnerConfig) -> "CommandBuilder":
        return cls(config=config, target=get_execution_target(config))

    @property
    def path_replacer(self) -> PathReplacer:
        return self.target.resolve_path_context()

    def with_arguments(self, arguments: str) -> "CommandBuilder":
        return attrs.evolve(self, arguments=arguments)

    def build(self, cwd: str | Path | None = None) -> list[str]:
        """Returns the ordered argv; always non-empty and always ending with the forced flags."""
        replacer = self.path_replacer
        cwd_str = str(cwd) if cwd is not None else None
        tokens = [
            *self.target.extra_prefix_arguments(),
            self._php_path(),
            self._phpunit_path(),
            *self._user_arguments(replacer),
        ]
        return [replacer.substitute_working_directory(token, cwd_str) for token in tokens if token]

    def command_spec(
        self,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandSpec:
        """Packages `build()` for the process runner."""
        cwd = cwd if cwd is not None else self.config.cwd
        argv = self.build(cwd)
        prefix_len = len([t for t in self.target.extra_prefix_arguments() if t])
        merged_env = {**self.config.env, **(env or {})} or None
        return CommandSpec(
            prefix=tuple(argv[:prefix_len]),
            executable=argv[prefix_len],
            runner_path=argv[prefix_len + 1],
            arguments=tuple(argv[prefix_len + 2 :]),
            cwd=Path(cwd) if cwd is not None else None,
            env=merged_env,
            path_replacer=self.path_replacer,
        )

    def _user_arguments(self, replacer: PathReplacer) -> list[str]:
        raw = " ".join([self.arguments, *(shlex.join([arg]) for arg in self.config.args)]).strip()
        positionals, options = _parse_options(split_arguments(raw))

        args = list(positionals)
        for key, values in options.items():
            if key in DROPPED_OPTIONS:
                log.debug("Dropping option overridden by forced output flags", option=key)
                continue
            for value in values:
                args.extend(_format_option(key, value))

        return [replacer.to_remote(arg) for arg in args if arg] + list(FORCED_ARGUMENTS)

    def _php_path(self) -> str:
        return self.config.php or DEFAULT_PHP

    def _phpunit_path(self) -> str:
        return self.config.phpunit or DEFAULT_PHPUNIT


# 🔼⚙️
