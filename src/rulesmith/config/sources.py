"""Custom pydantic-settings source for Rulesmith configuration.

Configuration layers (in precedence order, highest first):
1. Environment variables (handled by pydantic-settings)
2. Project config: .rulesmith/config.yaml in project root
3. User config: ~/.config/rulesmith/config.yaml (or RULESMITH_CONFIG_DIR)

The YAML layers are combined with the same deep merge used for plugin
settings, so nested mappings merge and lists are unioned while other
values override.

Environment variables:
- RULESMITH_CONFIG_DIR: Override user config directory (default: ~/.config/rulesmith)
"""

import collections.abc as _abc
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

import rulesmith.compose.deep_merge as deep_merge
import rulesmith.errors as errors

# Environment variable for overriding user config directory
ENV_CONFIG_DIR = "RULESMITH_CONFIG_DIR"

PROJECT_CONFIG_DIR = ".rulesmith"
CONFIG_FILE = "config.yaml"


class ConfigFileError(errors.RulesmithError):
    """A config.yaml layer could not be read or is not a mapping."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


def get_user_config_dir() -> _pathlib.Path:
    """RULESMITH_CONFIG_DIR if set, else ~/.config/rulesmith."""
    override = _os.environ.get(ENV_CONFIG_DIR)
    if override:
        return _pathlib.Path(override)
    return _pathlib.Path.home() / ".config" / "rulesmith"


def get_user_config_path() -> _pathlib.Path:
    return get_user_config_dir() / CONFIG_FILE


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """Path to .rulesmith/config.yaml within the project."""
    return project_root / PROJECT_CONFIG_DIR / CONFIG_FILE


def load_yaml_file(path: _pathlib.Path) -> dict[str, _typing.Any] | None:
    """
    Parse one config layer.

    An empty file yields None. Anything other than a mapping at the top
    level is rejected.

    Raises:
        ConfigFileError: On read errors, YAML syntax errors and non-mapping
            documents.
    """
    try:
        parsed = _yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigFileError(path, f"cannot read file: {e}") from e
    except _yaml.YAMLError as e:
        raise ConfigFileError(path, f"invalid YAML: {e}") from e

    if parsed is None or isinstance(parsed, dict):
        return parsed
    raise ConfigFileError(path, f"expected a mapping at the top level, got {type(parsed).__name__}")


class YamlLayersSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source that loads and merges the user and project YAML files.

    Both layers are optional. After merging, the result is a plain dict
    that pydantic validates like any other source.
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None = None,
        *,
        user_config_path: _pathlib.Path | None = None,
    ) -> None:
        super().__init__(settings_cls)
        self._project_root = project_root
        self._user_config_path = user_config_path
        self._loaded_layers: list[tuple[str, _pathlib.Path]] = []
        self._merged = self._load_config_layers()

    def _load_config_layers(self) -> dict[str, _typing.Any]:
        merged: dict[str, _typing.Any] = {}

        for name, path in self.get_layer_paths():
            if not path.exists():
                continue
            content = load_yaml_file(path)
            if content:
                merged = deep_merge.deep_merge(merged, content)
                self._loaded_layers.append((name, path))

        return merged

    def get_layer_paths(self) -> list[tuple[str, _pathlib.Path]]:
        """
        All config layers, lowest precedence first.

        Returns:
            List of (layer_name, path) tuples, whether or not the file exists.
        """
        layers = [("user", self._user_config_path or get_user_config_path())]
        if self._project_root:
            layers.append(("project", get_project_config_path(self._project_root)))
        return layers

    def get_loaded_layers(self) -> list[tuple[str, _pathlib.Path]]:
        """Layers that were actually read, lowest precedence first."""
        return list(self._loaded_layers)

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,  # noqa: ARG002 - required by pydantic-settings interface
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        value = self._merged.get(field_name)
        return value, field_name, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        """Return merged config as a plain dict for pydantic validation."""
        return dict(self._merged)
