"""
Plugin manifest parsing.

Plugins are defined by a plugin.json manifest file that specifies
metadata, compatibility, what components the plugin provides and which
other plugins it needs.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import rulesmith.constants as constants
import rulesmith.errors as errors
import rulesmith.plugins.validation as validation
import rulesmith.plugins.versions as versions

_logger = _logging.getLogger(__name__)

PLUGIN_NAME_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

MarkdownFileName = _typing.Annotated[str, _pydantic.Field(pattern=r"^[a-z0-9-]+\.md$")]
TemplateVariable = _typing.Annotated[str, _pydantic.Field(pattern=r"^[A-Z_]+$")]
PatternKey = _typing.Annotated[str, _pydantic.Field(pattern=r"^[a-zA-Z0-9_]+$")]
NpmPackage = _typing.Annotated[str, _pydantic.Field(pattern=r"^[a-z0-9@/-]+$")]


class _ManifestModel(_pydantic.BaseModel):
    model_config = _pydantic.ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class Repository(_ManifestModel):
    type: _typing.Literal["git", "svn", "hg"]
    url: str


class Compatibility(_ManifestModel):
    """Version ranges (npm semver syntax) the plugin works with."""

    claude_code: str = _pydantic.Field(..., alias="claudeCode")
    node: str


class Provides(_ManifestModel):
    """Components shipped in the plugin directory."""

    skills: validation.UniqueSlugs = _pydantic.Field(
        default_factory=list,
        description="Skill directory names under skills/",
    )
    agents: _typing.Annotated[
        list[MarkdownFileName], _pydantic.AfterValidator(validation.require_unique)
    ] = _pydantic.Field(default_factory=list, description="Agent files under agents/")
    commands: _typing.Annotated[
        list[MarkdownFileName], _pydantic.AfterValidator(validation.require_unique)
    ] = _pydantic.Field(default_factory=list, description="Command files under commands/")
    hooks: validation.UniqueStrings = _pydantic.Field(
        default_factory=list,
        description="Hook files under hooks/",
    )
    skill_rules_fragment: str | None = _pydantic.Field(
        default=None,
        alias="skillRulesFragment",
        description="Path to skill-rules.fragment.json, relative to the plugin",
    )
    settings_fragment: str | None = _pydantic.Field(
        default=None,
        alias="settingsFragment",
        description="Path to a settings.json fragment, relative to the plugin",
    )


class Dependencies(_ManifestModel):
    plugins: validation.UniqueSlugs = _pydantic.Field(default_factory=list)
    npm: dict[NpmPackage, str] = _pydantic.Field(default_factory=dict)


class Templates(_ManifestModel):
    paths: dict[TemplateVariable, str] = _pydantic.Field(
        default_factory=dict,
        description="Template path variables and their defaults",
    )


class PromptChoice(_ManifestModel):
    name: str
    value: _typing.Any


class PromptDefinition(_ManifestModel):
    """An installation-time question, answered by an external prompter."""

    type: _typing.Literal["input", "confirm", "list", "checkbox"]
    name: str = _pydantic.Field(..., pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    message: str = _pydantic.Field(..., min_length=1)
    default: _typing.Any = None
    choices: list[PromptChoice] | None = None
    when: str | None = None


class PluginManifest(_ManifestModel):
    """
    Plugin manifest parsed from plugin.json.

    Required fields:
    - name, version, displayName, description, author
    - compatibility: claudeCode and node version ranges
    - provides: what the plugin installs

    Immutable once loaded.
    """

    # Required metadata
    name: str = _pydantic.Field(
        ...,
        pattern=PLUGIN_NAME_PATTERN,
        description="Plugin name (lowercase, alphanumeric with hyphens)",
    )

    version: str = _pydantic.Field(
        ...,
        pattern=r"^\d+\.\d+\.\d+(?:-[a-z0-9.]+)?$",
        description="Semantic version (e.g., '1.0.0')",
    )

    display_name: str = _pydantic.Field(
        ...,
        alias="displayName",
        min_length=1,
        max_length=100,
        description="Human-readable plugin name",
    )

    description: str = _pydantic.Field(
        ...,
        min_length=10,
        max_length=500,
        description="What the plugin does",
    )

    author: str = _pydantic.Field(
        ...,
        min_length=1,
        description='Author name and email (e.g., "Name <email@example.com>")',
    )

    # Optional metadata
    homepage: str | None = None
    repository: Repository | None = None
    keywords: validation.UniqueSlugs | None = None

    compatibility: Compatibility
    provides: Provides

    dependencies: Dependencies = _pydantic.Field(default_factory=Dependencies)

    path_patterns: dict[PatternKey, list[str]] | None = _pydantic.Field(
        default=None,
        alias="pathPatterns",
        description="Framework detection path patterns",
    )
    content_patterns: dict[PatternKey, list[str]] | None = _pydantic.Field(
        default=None,
        alias="contentPatterns",
        description="Framework detection content patterns",
    )

    templates: Templates = _pydantic.Field(default_factory=Templates)
    prompts: list[PromptDefinition] = _pydantic.Field(default_factory=list)

    def to_json(self) -> dict[str, _typing.Any]:
        """Plain JSON tree with the manifest's on-disk key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


ManifestCheck: _typing.TypeAlias = validation.CheckResult[PluginManifest]


def _semantic_checks(data: _typing.Any, result: ManifestCheck) -> None:
    """Checks pydantic can't express; run on raw data so they report alongside schema errors."""
    if not isinstance(data, dict):
        return

    compatibility = data.get("compatibility")
    if isinstance(compatibility, dict):
        for key in ("claudeCode", "node"):
            value = compatibility.get(key)
            if isinstance(value, str) and not versions.is_valid_range(value):
                result.errors.append(f"/compatibility/{key}: invalid {key} version range: {value}")

    author = data.get("author")
    if isinstance(author, str) and author and "<" not in author and "@" not in author:
        result.warnings.append(
            'Author should include email (e.g., "Name <email@example.com>")'
        )


def validate_manifest_data(data: _typing.Any) -> ManifestCheck:
    """
    Validate a parsed manifest document.

    Structural violations and semantic ones (compatibility ranges) are
    returned together; the author style check only produces a warning.
    """
    result = validation.validate_model(PluginManifest, data)
    _semantic_checks(data, result)
    return result


def load_manifest(path: _pathlib.Path) -> PluginManifest:
    """
    Load a plugin manifest from plugin.json.

    Args:
        path: Path to plugin.json file.

    Returns:
        Parsed PluginManifest.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ManifestValidationError: If the file is invalid JSON or violates the schema.
    """
    data = validation.read_json(path, errors.ManifestValidationError)
    result = validate_manifest_data(data)
    if not result.valid:
        raise errors.ManifestValidationError(result.errors, source=str(path))
    for warning in result.warnings:
        _logger.warning("%s: %s", path, warning)
    assert result.document is not None
    return result.document


@_dataclasses.dataclass
class Plugin:
    """
    A loaded plugin with manifest and path.

    This is the runtime representation of a plugin, combining
    the parsed manifest with the filesystem location.
    """

    manifest: PluginManifest
    """Parsed plugin.json manifest."""

    path: _pathlib.Path
    """Path to plugin directory."""

    @property
    def name(self) -> str:
        """Plugin name from manifest."""
        return self.manifest.name

    @property
    def version(self) -> str:
        """Plugin version from manifest."""
        return self.manifest.version

    @property
    def dependencies(self) -> list[str]:
        """Names of plugins that must be installed first."""
        return list(self.manifest.dependencies.plugins)

    @property
    def skills_path(self) -> _pathlib.Path:
        return self.path / "skills"

    @property
    def agents_path(self) -> _pathlib.Path:
        return self.path / "agents"

    @property
    def commands_path(self) -> _pathlib.Path:
        return self.path / "commands"

    @property
    def hooks_path(self) -> _pathlib.Path:
        return self.path / "hooks"

    @property
    def fragment_path(self) -> _pathlib.Path | None:
        """Path to the declared skill rules fragment, if any."""
        fragment = self.manifest.provides.skill_rules_fragment
        return self.path / fragment if fragment else None

    @property
    def settings_fragment_path(self) -> _pathlib.Path | None:
        """Path to the declared settings fragment, if any."""
        fragment = self.manifest.provides.settings_fragment
        return self.path / fragment if fragment else None

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        provides = self.manifest.provides
        return {
            "name": self.name,
            "version": self.version,
            "displayName": self.manifest.display_name,
            "description": self.manifest.description,
            "path": str(self.path),
            "skills": list(provides.skills),
            "agents": list(provides.agents),
            "commands": list(provides.commands),
            "hooks": list(provides.hooks),
            "dependencies": self.dependencies,
        }


def manifest_path(plugin_dir: _pathlib.Path) -> _pathlib.Path:
    return plugin_dir / constants.MANIFEST_FILE
