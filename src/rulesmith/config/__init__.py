"""
Configuration module for Rulesmith.

Uses pydantic-settings for environment variable loading and YAML layers.
"""

from rulesmith.config.settings import (
    ProjectRootTooWideError,
    Settings,
    find_git_root,
    find_project_root,
)
from rulesmith.config.sources import ConfigFileError

__all__ = [
    "ConfigFileError",
    "ProjectRootTooWideError",
    "Settings",
    "find_git_root",
    "find_project_root",
]
