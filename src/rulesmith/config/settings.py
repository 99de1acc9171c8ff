"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with RULESMITH_ prefix
3. Layered YAML config files:
   - Project config: .rulesmith/config.yaml (highest)
   - User config: ~/.config/rulesmith/config.yaml (lowest)

Example:
  RULESMITH_PLUGINS_DIR=~/plugins
  RULESMITH_ESSENTIAL_FILES='["settings.json"]'
"""

import logging as _logging
import pathlib as _pathlib
import subprocess as _subprocess
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import rulesmith.config.sources as sources
import rulesmith.constants as constants
import rulesmith.errors as errors

_logger = _logging.getLogger(__name__)

PROJECT_MARKERS: tuple[str, ...] = (".git", "package.json", "pyproject.toml")

LogLevel = _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class ProjectRootTooWideError(errors.RulesmithError):
    """The detected project root is ~, / or a shared parent like /home."""


# Parents shared by many projects
_SHARED_PARENTS: tuple[str, ...] = ("/", "/Users", "/home", "/var", "/etc", "/tmp", "/private/tmp")


def find_git_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path | None:
    """Top level of the git work tree containing start_path, if any."""
    cwd = start_path or _pathlib.Path.cwd()
    try:
        completed = _subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (_subprocess.TimeoutExpired, OSError) as e:
        _logger.debug("git root lookup failed in %s: %s", cwd, e)
        return None
    if completed.returncode != 0:
        return None
    return _pathlib.Path(completed.stdout.strip())


def _is_overly_wide_root(path: _pathlib.Path) -> bool:
    resolved = path.resolve()
    if resolved == _pathlib.Path.home().resolve():
        return True
    return any(resolved == _pathlib.Path(p).resolve() for p in _SHARED_PARENTS)


def _nearest_marked_dir(start: _pathlib.Path) -> _pathlib.Path | None:
    for candidate in (start, *start.parents):
        if candidate == candidate.parent:
            break
        if any((candidate / marker).exists() for marker in PROJECT_MARKERS):
            return candidate
    return None


def find_project_root(
    start_path: _pathlib.Path | None = None,
    *,
    allow_wide_root: bool = False,
) -> _pathlib.Path:
    """
    Locate the project a command operates on.

    The git work tree wins; otherwise the nearest ancestor holding one of
    PROJECT_MARKERS; otherwise the start directory itself.

    Raises:
        ProjectRootTooWideError: If the result is the home directory, / or a
            shared parent, unless allow_wide_root is set.
    """
    start = (start_path or _pathlib.Path.cwd()).resolve()
    root = find_git_root(start) or _nearest_marked_dir(start) or start

    if not allow_wide_root and _is_overly_wide_root(root):
        raise ProjectRootTooWideError(
            f"Refusing to use '{root}' as the project root. "
            "Run from inside a project, pass --project, or set "
            "RULESMITH_ALLOW_HOME_DIRECTORY=true."
        )
    return root


class Settings(_pydantic_settings.BaseSettings):
    """
    Rulesmith configuration settings.

    All settings can be overridden via environment variables with RULESMITH_ prefix.

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (RULESMITH_*)
    3. Project config (.rulesmith/config.yaml)
    4. User config (~/.config/rulesmith/config.yaml)
    5. Field defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="RULESMITH_",
        env_nested_delimiter="__",
        extra="allow",  # Preserve unknown fields so `rulesmith config` can flag typos
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) (highest)
        2. env_settings (RULESMITH_* env vars)
        3. yaml_settings (user and project config.yaml)
        4. (defaults via Field definitions) (lowest)
        """
        project_root = find_project_root(allow_wide_root=True)

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.YamlLayersSettingsSource(settings_cls, project_root),
            file_secret_settings,
        )

    # =========================================================================
    # Locations
    # =========================================================================

    project_root: _pathlib.Path | None = _pydantic.Field(
        default=None,
        description="Project to install into (default: detected from cwd)",
    )

    plugins_dir: _pathlib.Path | None = _pydantic.Field(
        default=None,
        description="Directory holding one subdirectory per plugin",
    )

    core_dir: _pathlib.Path | None = _pydantic.Field(
        default=None,
        description="Directory holding the core hooks and skill-developer skill",
    )

    claude_dir: str = _pydantic.Field(
        default=constants.DEFAULT_CLAUDE_DIR,
        min_length=1,
        description="Destination tree, relative to the project root",
    )

    state_file: str = _pydantic.Field(
        default=constants.DEFAULT_STATE_FILE,
        min_length=1,
        description="Installation state record, relative to the project root",
    )

    essential_files: list[str] = _pydantic.Field(
        default_factory=lambda: list(constants.DEFAULT_ESSENTIAL_FILES),
        description="Files (relative to the destination tree) that must exist after install",
    )

    # =========================================================================
    # Behavior
    # =========================================================================

    verbose: bool = _pydantic.Field(default=False, description="Report debug events")

    log_level: LogLevel = _pydantic.Field(default="WARNING", description="Root log level")

    allow_home_directory: bool = _pydantic.Field(
        default=False,
        description="Allow running from overly broad directories like ~ or /",
    )

    @_pydantic.field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: _typing.Any) -> _typing.Any:
        return value.upper() if isinstance(value, str) else value

    # =========================================================================
    # Directory settings (computed at runtime)
    # =========================================================================

    @property
    def config_dir(self) -> _pathlib.Path:
        """User configuration directory (~/.config/rulesmith/)."""
        return sources.get_user_config_dir()

    def get_project_root(self) -> _pathlib.Path:
        """Configured project root, or the one detected from cwd."""
        if self.project_root is not None:
            return self.project_root.expanduser().resolve()
        return find_project_root(allow_wide_root=self.allow_home_directory)

    def get_plugins_dir(self) -> _pathlib.Path:
        """Configured plugins directory, or ``<config_dir>/plugins``."""
        if self.plugins_dir is not None:
            return self.plugins_dir.expanduser()
        return self.config_dir / "plugins"

    def get_core_dir(self) -> _pathlib.Path:
        """Configured core directory, or ``<config_dir>/core``."""
        if self.core_dir is not None:
            return self.core_dir.expanduser()
        return self.config_dir / "core"

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Unknown top-level keys (typically typos in a config file)."""
        return dict(self.model_extra) if self.model_extra else {}

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to dictionary (for JSON output)."""
        return {
            "project_root": str(self.project_root) if self.project_root else None,
            "plugins_dir": str(self.get_plugins_dir()),
            "core_dir": str(self.get_core_dir()),
            "claude_dir": self.claude_dir,
            "state_file": self.state_file,
            "essential_files": list(self.essential_files),
            "verbose": self.verbose,
            "log_level": self.log_level,
            "allow_home_directory": self.allow_home_directory,
            "config_dir": str(self.config_dir),
        }
