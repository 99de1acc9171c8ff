"""
Template variable substitution.

Placeholders use the form ``{{UPPER_SNAKE_NAME}}``. A placeholder whose name
is not in the context is left untouched: it may be filled in later by a
downstream consumer, or be intentionally optional. Use validate() before
installation to find out which names are missing.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import pathlib as _pathlib
import re as _re
import typing as _typing

import rulesmith.compose.values as values

VARIABLE_PATTERN = _re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")

_NAME_SPLIT_RE = _re.compile(r"[^A-Za-z0-9]+")
_CAMEL_BOUNDARY_RE = _re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

TemplateScalar: _typing.TypeAlias = str | int | float | bool


def normalize_key(key: str) -> str:
    """
    Convert an arbitrary key to UPPER_SNAKE form.

    ``frontendDir``, ``frontend-dir`` and ``FRONTEND_DIR`` all become
    ``FRONTEND_DIR``.
    """
    if VARIABLE_PATTERN.fullmatch("{{" + key + "}}"):
        return key
    spaced = _CAMEL_BOUNDARY_RE.sub("_", key)
    parts = [p for p in _NAME_SPLIT_RE.split(spaced) if p]
    normalized = "_".join(parts).upper()
    if not normalized or normalized[0].isdigit():
        normalized = "_" + normalized
    return normalized


def stringify(value: _typing.Any) -> str:
    """Render a context value the way it appears in substituted text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class TemplateContext(_abc.MutableMapping[str, TemplateScalar]):
    """
    Variables available to templates.

    Keys are normalized to UPPER_SNAKE on insertion, so callers may pass
    any casing. Lookups normalize too.
    """

    def __init__(
        self,
        initial: _abc.Mapping[str, TemplateScalar] | None = None,
        **kwargs: TemplateScalar,
    ) -> None:
        self._data: dict[str, TemplateScalar] = {}
        if initial:
            self.update(initial)
        if kwargs:
            self.update(kwargs)

    @classmethod
    def layered(
        cls,
        *layers: _abc.Mapping[str, TemplateScalar] | None,
    ) -> TemplateContext:
        """Overlay contexts in order; later layers override earlier ones."""
        context = cls()
        for layer in layers:
            if layer:
                context.update(layer)
        return context

    def __getitem__(self, key: str) -> TemplateScalar:
        return self._data[normalize_key(key)]

    def __setitem__(self, key: str, value: TemplateScalar) -> None:
        self._data[normalize_key(key)] = value

    def __delitem__(self, key: str) -> None:
        del self._data[normalize_key(key)]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._data

    def __repr__(self) -> str:
        return f"TemplateContext({self._data!r})"

    def to_dict(self) -> dict[str, TemplateScalar]:
        return dict(self._data)


def default_context(project_root: _pathlib.Path, claude_dir: str = ".claude") -> TemplateContext:
    """Variables every installation provides."""
    return TemplateContext(
        PROJECT_ROOT=str(project_root),
        PROJECT_NAME=project_root.name or "project",
        CLAUDE_DIR=claude_dir,
    )


def replace(text: str, context: _abc.Mapping[str, _typing.Any]) -> str:
    """Replace every known placeholder in ``text``."""

    def _substitute(match: _re.Match[str]) -> str:
        name = match.group(1)
        if name not in context:
            return match.group(0)
        return stringify(context[name])

    return VARIABLE_PATTERN.sub(_substitute, text)


def replace_deep(tree: _typing.Any, context: _abc.Mapping[str, _typing.Any]) -> _typing.Any:
    """
    Apply replace() to every string leaf of a nested structure.

    Returns a structurally identical copy; mapping keys are not substituted.
    """
    if isinstance(tree, str):
        return replace(tree, context)
    kind = values.kind_of(tree)
    if kind is values.ValueKind.OBJECT:
        return {k: replace_deep(v, context) for k, v in tree.items()}
    if kind is values.ValueKind.SEQUENCE:
        return [replace_deep(v, context) for v in tree]
    return tree


def extract_variables(text: str) -> set[str]:
    """Names of all placeholders referenced by ``text``."""
    return set(VARIABLE_PATTERN.findall(text))


def extract_variables_deep(tree: _typing.Any) -> set[str]:
    """Names of all placeholders referenced anywhere in a nested structure."""
    if isinstance(tree, str):
        return extract_variables(tree)
    kind = values.kind_of(tree)
    found: set[str] = set()
    if kind is values.ValueKind.OBJECT:
        for v in tree.values():
            found |= extract_variables_deep(v)
    elif kind is values.ValueKind.SEQUENCE:
        for v in tree:
            found |= extract_variables_deep(v)
    return found


def has_variables(text: str) -> bool:
    return VARIABLE_PATTERN.search(text) is not None


@_dataclasses.dataclass(frozen=True)
class TemplateCheck:
    """Result of checking a template against a context."""

    missing: tuple[str, ...]
    """Referenced names absent from the context, sorted."""

    @property
    def valid(self) -> bool:
        return not self.missing


def validate(text: str, context: _abc.Mapping[str, _typing.Any]) -> TemplateCheck:
    """Report which variables referenced by ``text`` are missing from ``context``."""
    return _check(extract_variables(text), context)


def validate_deep(tree: _typing.Any, context: _abc.Mapping[str, _typing.Any]) -> TemplateCheck:
    """validate() for nested structures."""
    return _check(extract_variables_deep(tree), context)


def _check(names: set[str], context: _abc.Mapping[str, _typing.Any]) -> TemplateCheck:
    return TemplateCheck(missing=tuple(sorted(n for n in names if n not in context)))


def resolve_path(template: str, context: _abc.Mapping[str, _typing.Any]) -> _pathlib.Path:
    """
    Substitute a path template and normalize its separators.

    Example: ``{{FRONTEND_DIR}}/src`` with FRONTEND_DIR=web gives ``web/src``.
    """
    resolved = replace(template, context)
    return _pathlib.Path(resolved.replace("\\", "/"))
