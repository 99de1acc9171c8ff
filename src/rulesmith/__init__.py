"""
Rulesmith - composes a project's .claude tree from plugins.

Plugins contribute skills, agents, commands, hooks and skill rule
fragments; Rulesmith resolves their dependencies, merges their
contributions and installs the result into a project.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("rulesmith")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Rulesmith Contributors"

from rulesmith.config import Settings  # noqa: E402
from rulesmith.engine import ComposeRequest, ComposeResult, Composer  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "ComposeRequest",
    "ComposeResult",
    "Composer",
    "Settings",
]
