"""
Generic deep merge for settings and hook configuration.

Semantics:
- object + object: merged key-wise, recursively. Keys present on only one
  side pass through unchanged.
- sequence + sequence: concatenated, then de-duplicated by value equality
  keeping first occurrences.
- anything else (scalars, mismatched kinds): source replaces target.

Neither input is mutated. The skill rule set has its own typed merge in
rulesmith.compose.fragments.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import rulesmith.compose.values as values

_logger = _logging.getLogger(__name__)


def deep_merge(target: _typing.Any, source: _typing.Any) -> _typing.Any:
    """
    Merge ``source`` into ``target`` and return the result.

    Args:
        target: Lower-precedence value.
        source: Higher-precedence value.

    Returns:
        A new JSON-like tree.
    """
    target_kind = values.kind_of(target)
    source_kind = values.kind_of(source)

    if target_kind is values.ValueKind.OBJECT and source_kind is values.ValueKind.OBJECT:
        merged = {k: values.copy_value(v) for k, v in target.items()}
        for key, incoming in source.items():
            if key in merged:
                merged[key] = deep_merge(merged[key], incoming)
            else:
                merged[key] = values.copy_value(incoming)
        return merged

    if target_kind is values.ValueKind.SEQUENCE and source_kind is values.ValueKind.SEQUENCE:
        return values.unique(values.copy_value([*target, *source]))

    return values.copy_value(source)


def merge_settings(
    base: _abc.Mapping[str, _typing.Any],
    overrides: _abc.Iterable[_abc.Mapping[str, _typing.Any]],
) -> dict[str, _typing.Any]:
    """
    Fold a sequence of settings objects onto a base, in order.

    Later overrides win on scalar conflicts.
    """
    merged: dict[str, _typing.Any] = values.copy_value(base)
    for override in overrides:
        merged = deep_merge(merged, override)
    return merged


def merge_hooks(
    base_hooks: _abc.Mapping[str, _typing.Any],
    plugin_hooks: _abc.Iterable[_abc.Mapping[str, _typing.Any]],
) -> dict[str, list[_typing.Any]]:
    """
    Append plugin hook definitions to the base hooks, per event.

    Unlike deep_merge this keeps repeated definitions: two plugins that
    register the same command for the same event both run it. A single
    definition given instead of a list is wrapped in a list.
    """
    merged: dict[str, list[_typing.Any]] = {}
    for event, configs in base_hooks.items():
        merged[event] = _as_list(configs)

    for hooks in plugin_hooks:
        for event, configs in hooks.items():
            incoming = _as_list(configs)
            merged.setdefault(event, []).extend(incoming)
            _logger.debug("Added %d hook(s) for %s", len(incoming), event)

    return merged


def _as_list(value: _typing.Any) -> list[_typing.Any]:
    if values.kind_of(value) is values.ValueKind.SEQUENCE:
        return values.copy_value(value)
    return [values.copy_value(value)]
