# src/phpunit_runner/paths.py

"""
Translation between host paths and paths seen inside a remote or container runner.
"""

import re
from collections.abc import Iterable, Mapping

from attrs import define, field

# `${PWD}` / `$PWD` / `${workspaceFolder}` / `$workspaceFolder`
WORKSPACE_PLACEHOLDERS = tuple(
    re.compile(r"\$\{?" + name + r"\}?") for name in ("PWD", "workspaceFolder")
)
# Wrapper prefix Composer's proxy scripts leave on PHPUnit's own files.
PHP_VFS_COMPOSER = "phpvfscomposer://"
DRIVE_LETTER_PATH = re.compile(r"^(php_qn://)?(\w:)(.+)$", re.DOTALL)


def _to_mapping(value: Mapping[str, str] | Iterable[tuple[str, str]]) -> tuple[tuple[str, str], ...]:
    items = value.items() if isinstance(value, Mapping) else value
    return tuple((str(local), str(remote)) for local, remote in items)


@define(frozen=True, slots=True)
class PathReplacer:
    """
    Maps paths between the local filesystem and the runner's filesystem.

    `mapping` holds (local, remote) root pairs in registration order. Each
    direction performs a single substitution using the first entry whose root
    occurs in the path.
    """

    mapping: tuple[tuple[str, str], ...] = field(default=(), converter=_to_mapping)

    @classmethod
    def from_mapping(cls, paths: Mapping[str, str] | None) -> "PathReplacer":
        return cls(paths or {})

    def to_local(self, path: str) -> str:
        path = path.replace(PHP_VFS_COMPOSER, "")
        for local, remote in self.mapping:
            if remote and remote in path:
                path = path.replace(remote, local, 1)
                break
        return self._to_windows_path(path)

    def to_remote(self, path: str) -> str:
        for local, remote in self.mapping:
            if local and local in path:
                path = path.replace(local, remote, 1)
                break
        return self._to_windows_path(path.replace("\\", "/"))

    def substitute_working_directory(self, arg: str, cwd: str | None) -> str:
        replacement = cwd or ""
        for pattern in WORKSPACE_PLACEHOLDERS:
            arg = pattern.sub(lambda _m: replacement, arg)
        return arg

    @staticmethod
    def _to_windows_path(path: str) -> str:
        match = DRIVE_LETTER_PATH.match(path)
        if not match:
            return path
        scheme, drive, rest = match.groups()
        rest = rest.replace("/", "\\")
        return f"{scheme or ''}{drive}{rest}"


# 🔼⚙️
