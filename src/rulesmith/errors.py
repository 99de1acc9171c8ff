"""
Exception taxonomy for Rulesmith.

Validation and resolution errors are raised before anything is written to
the destination project. FileSystemError instances are collected during
installation rather than raised; InstallationError wraps the ones that
touched essential files.
"""

from __future__ import annotations

import pathlib as _pathlib


class RulesmithError(Exception):
    """Base class for all Rulesmith errors."""


# =============================================================================
# Validation
# =============================================================================


class ValidationFailure(RulesmithError):
    """A document failed validation; carries every violation found."""

    kind = "document"

    def __init__(self, errors: list[str], source: str | None = None) -> None:
        self.errors = list(errors)
        self.source = source
        where = f" in {source}" if source else ""
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Invalid {self.kind}{where}:\n{lines}")


class ManifestValidationError(ValidationFailure):
    """plugin.json failed schema or semantic validation."""

    kind = "plugin manifest"


class FragmentValidationError(ValidationFailure):
    """A skill-rules fragment failed validation."""

    kind = "skill rules fragment"


class StateValidationError(ValidationFailure):
    """An installation state record failed validation."""

    kind = "installation state"


# =============================================================================
# Dependency resolution
# =============================================================================


class ResolutionError(RulesmithError):
    """Plugin selection cannot be turned into an install order."""


class CircularDependencyError(ResolutionError):
    """The dependency graph contains a cycle through ``plugin``."""

    def __init__(self, plugin: str, cycle: list[str]) -> None:
        self.plugin = plugin
        self.cycle = list(cycle)
        super().__init__(
            f"Circular dependency detected at plugin {plugin}: {' -> '.join(self.cycle)}"
        )


class MissingPluginError(ResolutionError):
    """A requested plugin, or one of its dependencies, is not available."""

    def __init__(self, plugin: str, requester: str | None = None) -> None:
        self.plugin = plugin
        self.requester = requester
        if requester:
            message = f"Plugin {requester} depends on {plugin}, which is not available"
        else:
            message = f"Plugin not found: {plugin}"
        super().__init__(message)


class DuplicatePluginError(ResolutionError):
    """The same plugin name was selected more than once."""

    def __init__(self, plugin: str) -> None:
        self.plugin = plugin
        super().__init__(f"Plugin selected more than once: {plugin}")


# =============================================================================
# Installation
# =============================================================================


class DestinationExistsError(RulesmithError):
    """The destination tree already exists and force was not given."""

    def __init__(self, path: _pathlib.Path) -> None:
        self.path = path
        super().__init__(f"{path} already exists. Use --force to overwrite.")


class InstallationConflictError(RulesmithError):
    """The project already has an installation state record."""

    def __init__(self, path: _pathlib.Path, installed: list[str] | None = None) -> None:
        self.path = path
        self.installed = list(installed or [])
        plugins = f"; installed: {', '.join(self.installed)}" if self.installed else ""
        super().__init__(
            f"Project is already initialized ({path}{plugins}). Use --force to reinstall."
        )


class FileSystemError(RulesmithError):
    """A single file could not be read or written during installation."""

    def __init__(self, path: _pathlib.Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class InstallationError(RulesmithError):
    """Essential files could not be installed."""

    def __init__(self, failures: list[FileSystemError]) -> None:
        self.failures = list(failures)
        lines = "\n".join(f"  - {f}" for f in self.failures)
        super().__init__(f"Failed to install essential files:\n{lines}")


# =============================================================================
# Warnings
# =============================================================================


class TemplateMissingVariableWarning(UserWarning):
    """A template references variables that are not in the context."""
