"""
Copy planning.

Walking a source tree is separated from writing it: plan_copy() only
enumerates the files and decides what should happen to each, and the
Installer executes the plan. Dry runs report the same plan they would
otherwise execute.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import enum as _enum
import pathlib as _pathlib
import typing as _typing

import rulesmith.compose.templates as templates
import rulesmith.constants as constants


class Action(str, _enum.Enum):
    """What happens to one file."""

    WRITE = "write"
    """Destination doesn't exist yet."""

    OVERWRITE = "overwrite"
    """Destination exists and force is set."""

    SKIP_EXISTING = "skip"
    """Destination exists and is kept as-is."""


@_dataclasses.dataclass(frozen=True)
class FileAction:
    """One planned file copy."""

    relative_path: str
    """Path relative to the source root, with forward slashes."""

    source: _pathlib.Path
    destination: _pathlib.Path
    action: Action

    substitute: bool
    """Whether template variables are substituted in the content."""

    @property
    def writes(self) -> bool:
        return self.action is not Action.SKIP_EXISTING


def is_text_file(path: _pathlib.Path) -> bool:
    """Whether ``path`` gets template substitution when copied."""
    return path.suffix.lower() in constants.TEXT_EXTENSIONS


def iter_source_files(src: _pathlib.Path) -> _typing.Iterator[_pathlib.Path]:
    """Yield every file under ``src`` (dot files included), sorted."""
    if not src.is_dir():
        return
    for path in sorted(src.rglob("*")):
        if path.is_file():
            yield path


def plan_copy(
    src: _pathlib.Path,
    dest: _pathlib.Path,
    *,
    force: bool = False,
) -> list[FileAction]:
    """
    Enumerate the copy of ``src`` into ``dest``.

    Nothing is read or written besides directory listings and existence
    checks.

    Args:
        src: Source directory.
        dest: Destination directory (need not exist).
        force: Overwrite existing destination files instead of skipping them.

    Returns:
        One FileAction per source file, in sorted path order.
    """
    actions: list[FileAction] = []
    for path in iter_source_files(src):
        relative = path.relative_to(src)
        destination = dest / relative
        if destination.exists():
            action = Action.OVERWRITE if force else Action.SKIP_EXISTING
        else:
            action = Action.WRITE
        actions.append(
            FileAction(
                relative_path=relative.as_posix(),
                source=path,
                destination=destination,
                action=action,
                substitute=is_text_file(path),
            )
        )
    return actions


def render(action: FileAction, context: _abc.Mapping[str, _typing.Any]) -> bytes:
    """
    Produce the bytes to write for ``action``.

    Text files are decoded as UTF-8 and substituted; everything else is
    copied byte-for-byte.

    Raises:
        OSError: If the source can't be read.
        UnicodeDecodeError: If a text file isn't valid UTF-8.
    """
    raw = action.source.read_bytes()
    if not action.substitute:
        return raw
    return templates.replace(raw.decode("utf-8"), context).encode("utf-8")


def summarize(actions: _abc.Iterable[FileAction]) -> dict[Action, int]:
    """Count planned actions by kind."""
    counts = {action: 0 for action in Action}
    for item in actions:
        counts[item.action] += 1
    return counts
