"""
Plugin discovery from a plugins directory.

Each immediate subdirectory holding a plugin.json is a plugin. The
directory name is expected to match the manifest name; a mismatch is
logged and the manifest name wins.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import rulesmith.errors as errors
import rulesmith.plugins.loader as loader
import rulesmith.plugins.manifest as manifest

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class DiscoveryResult:
    """Valid plugins by name, plus the validation errors of invalid ones."""

    plugins: dict[str, manifest.Plugin] = _dataclasses.field(default_factory=dict)
    invalid: dict[str, errors.ManifestValidationError] = _dataclasses.field(default_factory=dict)


def _declared_name(plugin_dir: _pathlib.Path) -> str | None:
    try:
        data = _json.loads(manifest.manifest_path(plugin_dir).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    name = data.get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) else None


class PluginDiscovery:
    """
    Discovers plugins in a plugins directory.

    Invalid plugins are skipped by discover(), kept with their errors by
    scan() and reported by discover_all(include_errors=True).
    """

    def __init__(
        self,
        plugins_dir: _pathlib.Path,
        plugin_loader: loader.PluginLoader | None = None,
    ) -> None:
        """
        Initialize plugin discovery.

        Args:
            plugins_dir: Directory containing one subdirectory per plugin.
            plugin_loader: Loader to use (defaults to a new PluginLoader).
        """
        self._plugins_dir = plugins_dir
        self._loader = plugin_loader or loader.PluginLoader()

    @property
    def plugins_dir(self) -> _pathlib.Path:
        return self._plugins_dir

    def _candidate_dirs(self) -> _typing.Iterator[_pathlib.Path]:
        if not self._plugins_dir.is_dir():
            return
        for plugin_dir in sorted(self._plugins_dir.iterdir()):
            if plugin_dir.is_dir() and manifest.manifest_path(plugin_dir).exists():
                yield plugin_dir

    def discover(self) -> dict[str, manifest.Plugin]:
        """
        Discover all valid plugins.

        Returns:
            Dict mapping plugin name to Plugin instance, sorted by directory.
        """
        return self.scan().plugins

    def scan(self) -> DiscoveryResult:
        """
        Discover plugins and keep the manifest errors of invalid ones.

        Invalid plugins are keyed by directory name and, when plugin.json
        still declares a readable name, by that name too.
        """
        result = DiscoveryResult()
        for item in self.discover_all(include_errors=True):
            if isinstance(item, manifest.Plugin):
                result.plugins[item.name] = item
                continue
            path, error = item
            _logger.warning("Skipping invalid plugin at %s: %s", path, error)
            if isinstance(error, errors.ManifestValidationError):
                for name in (path.name, _declared_name(path)):
                    if name:
                        result.invalid.setdefault(name, error)
        return result

    def discover_all(
        self,
        *,
        include_errors: bool = False,
    ) -> _typing.Iterator[manifest.Plugin | tuple[_pathlib.Path, Exception]]:
        """
        Discover all plugins, optionally including errors.

        Args:
            include_errors: If True, yield (path, exception) for failures.

        Yields:
            Plugin instances, or (path, exception) tuples if include_errors.
        """
        for plugin_dir in self._candidate_dirs():
            try:
                plugin = self._loader.load(plugin_dir)
            except (FileNotFoundError, errors.ManifestValidationError) as e:
                if include_errors:
                    yield (plugin_dir, e)
                continue

            if plugin.name != plugin_dir.name:
                _logger.warning(
                    "Plugin directory %s holds plugin named %s", plugin_dir.name, plugin.name
                )
            yield plugin
