"""
Installation state record.

After a successful installation the project root gets a small JSON file
(``.claude-code-cli.json`` by default) recording which tool version
installed which plugins, and which custom paths were used:

    {
      "version": "0.1.0",
      "installedAt": "2025-01-15T10:30:00Z",
      "plugins": [{"name": "backend", "version": "1.0.0", "installedAt": "..."}],
      "customPaths": {"BACKEND_DIR": "api"}
    }

Its presence marks the project as already initialized.
"""

from __future__ import annotations

import collections.abc as _abc
import datetime as _datetime
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import rulesmith.constants as constants
import rulesmith.errors as errors
import rulesmith.plugins.manifest as manifest
import rulesmith.plugins.validation as validation

SEMVER_PATTERN = r"^\d+\.\d+\.\d+(?:-[a-z0-9.]+)?$"


class _StateModel(_pydantic.BaseModel):
    model_config = _pydantic.ConfigDict(extra="forbid", populate_by_name=True)


class InstalledPlugin(_StateModel):
    name: str = _pydantic.Field(..., pattern=manifest.PLUGIN_NAME_PATTERN)
    version: str = _pydantic.Field(..., pattern=SEMVER_PATTERN)
    installed_at: _datetime.datetime = _pydantic.Field(..., alias="installedAt")


class StateSettings(_StateModel):
    auto_update: bool | None = _pydantic.Field(default=None, alias="autoUpdate")
    analytics_enabled: bool | None = _pydantic.Field(default=None, alias="analyticsEnabled")


class InstallationState(_StateModel):
    """Contents of the installation state file."""

    version: str = _pydantic.Field(..., pattern=SEMVER_PATTERN)
    """Version of the tool that performed the installation."""

    installed_at: _datetime.datetime = _pydantic.Field(..., alias="installedAt")
    plugins: list[InstalledPlugin] = _pydantic.Field(default_factory=list)
    custom_paths: dict[str, str] = _pydantic.Field(default_factory=dict, alias="customPaths")
    settings: StateSettings | None = None

    @classmethod
    def create(
        cls,
        tool_version: str,
        plugins: _abc.Iterable[manifest.Plugin],
        custom_paths: _abc.Mapping[str, str] | None = None,
        *,
        settings: StateSettings | None = None,
        now: _datetime.datetime | None = None,
    ) -> InstallationState:
        """Build the record for plugins installed just now."""
        timestamp = now or _datetime.datetime.now(_datetime.timezone.utc)
        return cls(
            version=tool_version,
            installed_at=timestamp,
            plugins=[
                InstalledPlugin(name=p.name, version=p.version, installed_at=timestamp)
                for p in plugins
            ],
            custom_paths=dict(custom_paths or {}),
            settings=settings,
        )

    @property
    def plugin_names(self) -> list[str]:
        return [p.name for p in self.plugins]

    def to_json(self) -> dict[str, _typing.Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


StateCheck: _typing.TypeAlias = validation.CheckResult[InstallationState]


def state_path(
    project_root: _pathlib.Path,
    state_file: str = constants.DEFAULT_STATE_FILE,
) -> _pathlib.Path:
    return project_root / state_file


def validate_state_data(data: _typing.Any) -> StateCheck:
    return validation.validate_model(InstallationState, data)


def load_state(path: _pathlib.Path) -> InstallationState:
    """
    Load an installation state file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        StateValidationError: If the file is invalid.
    """
    data = validation.read_json(path, errors.StateValidationError)
    result = validate_state_data(data)
    if not result.valid:
        raise errors.StateValidationError(result.errors, source=str(path))
    assert result.document is not None
    return result.document
