"""
Validation helpers shared by manifest, fragment and state documents.

Documents are validated with pydantic, which already collects every
structural violation in one pass. This module turns pydantic's error list
into ``<path>: <problem>`` strings and provides the result container used
by the semantic checks layered on top.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic

import rulesmith.errors as errors

_QUOTED_RE = _re.compile(r"'([^']*)'")

T = _typing.TypeVar("T", bound=_pydantic.BaseModel)


def require_unique(items: list[_typing.Any]) -> list[_typing.Any]:
    seen: list[_typing.Any] = []
    for item in items:
        if item in seen:
            raise ValueError(f"must NOT have duplicate items ({item!r} repeated)")
        seen.append(item)
    return items


UniqueStrings = _typing.Annotated[list[str], _pydantic.AfterValidator(require_unique)]
"""A list of strings with no repeated items."""

Slug = _typing.Annotated[str, _pydantic.Field(pattern=r"^[a-z0-9-]+$")]
"""Lowercase name: letters, digits and hyphens."""

UniqueSlugs = _typing.Annotated[list[Slug], _pydantic.AfterValidator(require_unique)]


def json_path(loc: _typing.Sequence[str | int]) -> str:
    """Render a pydantic location as a JSON pointer (``root`` for the document)."""
    if not loc:
        return "root"
    return "/" + "/".join(str(part) for part in loc)


def format_errors(exc: _pydantic.ValidationError) -> list[str]:
    """
    Format every pydantic error as ``<path>: <problem>``.

    Examples:
        ``root: missing required property "name"``
        ``/provides: unexpected property "tools"``
        ``/skills/a/type: Input should be 'domain' or 'guardrail' (allowed: domain, guardrail)``
    """
    messages: list[str] = []
    for error in exc.errors(include_url=False):
        loc = tuple(error.get("loc", ()))
        error_type = error.get("type", "")
        message = error.get("msg", "validation error")
        ctx = error.get("ctx") or {}

        if error_type == "missing" and loc:
            messages.append(f'{json_path(loc[:-1])}: missing required property "{loc[-1]}"')
        elif error_type == "extra_forbidden" and loc:
            messages.append(f'{json_path(loc[:-1])}: unexpected property "{loc[-1]}"')
        elif error_type == "string_pattern_mismatch":
            messages.append(
                f"{json_path(loc)}: {message} (expected pattern: {ctx.get('pattern', '')})"
            )
        elif error_type in ("literal_error", "enum"):
            allowed = _QUOTED_RE.findall(str(ctx.get("expected", "")))
            messages.append(f"{json_path(loc)}: {message} (allowed: {', '.join(allowed)})")
        elif error_type == "value_error":
            messages.append(f"{json_path(loc)}: {message.removeprefix('Value error, ')}")
        else:
            messages.append(f"{json_path(loc)}: {message}")
    return messages


@_dataclasses.dataclass
class CheckResult(_typing.Generic[T]):
    """
    Outcome of validating one document.

    ``document`` is set only when structural validation succeeded.
    ``warnings`` never make the result invalid.
    """

    document: T | None = None
    errors: list[str] = _dataclasses.field(default_factory=list)
    warnings: list[str] = _dataclasses.field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.document is not None and not self.errors


def validate_model(model: type[T], data: _typing.Any) -> CheckResult[T]:
    """Run structural validation and collect formatted errors."""
    result: CheckResult[T] = CheckResult()
    try:
        result.document = model.model_validate(data)
    except _pydantic.ValidationError as e:
        result.errors.extend(format_errors(e))
    return result


def read_json(
    path: _pathlib.Path,
    failure: type[errors.ValidationFailure],
) -> _typing.Any:
    """
    Read a JSON document.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValidationFailure: (the given subclass) if the file isn't valid JSON.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        return _json.loads(path.read_text(encoding="utf-8"))
    except _json.JSONDecodeError as e:
        raise failure([f"root: invalid JSON ({e})"], source=str(path)) from e
