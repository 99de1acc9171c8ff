"""
Dependency resolution for selected plugins.

Produces an install order in which every plugin comes after all of its
transitive dependencies. Independent plugins keep the order in which they
were requested.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import typing as _typing

import rulesmith.errors as errors
import rulesmith.plugins.manifest as manifest
import rulesmith.reporting as reporting

_logger = _logging.getLogger(__name__)

DependencyLookup: _typing.TypeAlias = _abc.Callable[[str], _abc.Sequence[str] | None]
"""Returns the declared plugin dependencies of a name, or None if it is unknown."""


class DependencyResolver:
    """
    Orders plugins so dependencies install before dependents.

    The traversal keeps two sets scoped to a single resolve() call: the
    names on the current DFS path (for cycle detection) and the names
    already placed in the order (so each edge is followed once).
    """

    def __init__(
        self,
        lookup: DependencyLookup,
        reporter: reporting.Reporter | None = None,
    ) -> None:
        self._lookup = lookup
        self._reporter = reporter

    def _dependencies_of(self, name: str, requester: str | None) -> _abc.Sequence[str]:
        try:
            deps = self._lookup(name)
        except KeyError:
            deps = None
        if deps is None:
            raise errors.MissingPluginError(name, requester)
        return deps

    def resolve(self, requested: _abc.Sequence[str]) -> list[str]:
        """
        Compute the install order for ``requested``.

        Raises:
            DuplicatePluginError: If a name is requested twice.
            MissingPluginError: If a plugin or dependency is unknown.
            CircularDependencyError: If the dependency graph has a cycle.
        """
        seen: set[str] = set()
        for name in requested:
            if name in seen:
                raise errors.DuplicatePluginError(name)
            seen.add(name)

        order: list[str] = []
        resolved: set[str] = set()
        for name in requested:
            self._visit(name, None, path=[], on_path=set(), resolved=resolved, order=order)

        if self._reporter is not None:
            self._reporter.info(f"Install order: {', '.join(order)}", source="resolver")
        return order

    def _visit(
        self,
        name: str,
        requester: str | None,
        *,
        path: list[str],
        on_path: set[str],
        resolved: set[str],
        order: list[str],
    ) -> None:
        if name in resolved:
            return
        if name in on_path:
            cycle = path[path.index(name):] + [name]
            raise errors.CircularDependencyError(name, cycle)

        deps = self._dependencies_of(name, requester)

        path.append(name)
        on_path.add(name)
        for dep in deps:
            self._visit(dep, name, path=path, on_path=on_path, resolved=resolved, order=order)
        path.pop()
        on_path.discard(name)

        resolved.add(name)
        order.append(name)
        if requester is not None:
            _logger.debug("Resolved %s (required by %s)", name, requester)


def resolve_plugins(
    requested: _abc.Sequence[str],
    available: _abc.Mapping[str, manifest.Plugin],
    reporter: reporting.Reporter | None = None,
    *,
    invalid: _abc.Mapping[str, errors.ManifestValidationError] | None = None,
) -> list[manifest.Plugin]:
    """
    Resolve requested plugin names against discovered plugins.

    Args:
        invalid: Manifest errors of plugins that failed to load, by name.
            A selected or required plugin found here raises its manifest
            error instead of MissingPluginError.

    Returns:
        Plugin instances in install order.
    """

    def lookup(name: str) -> list[str] | None:
        plugin = available.get(name)
        return plugin.dependencies if plugin is not None else None

    try:
        order = DependencyResolver(lookup, reporter).resolve(requested)
    except errors.MissingPluginError as e:
        if invalid and e.plugin in invalid:
            raise invalid[e.plugin] from e
        raise
    return [available[name] for name in order]
