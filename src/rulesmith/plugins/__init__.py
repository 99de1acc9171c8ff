"""
Plugin system for Rulesmith.

Plugins are directories that contribute to the composed tree:
- Skills (skills/<name>/SKILL.md)
- Agents and commands (agents/*.md, commands/*.md)
- Hook scripts (hooks/)
- A skill rules fragment (skill-rules.fragment.json)
- An optional settings fragment

Each plugin is described by a plugin.json manifest and may depend on
other plugins, which are installed first.
"""

from rulesmith.plugins.discovery import PluginDiscovery
from rulesmith.plugins.loader import PluginLoader
from rulesmith.plugins.manifest import (
    ManifestCheck,
    Plugin,
    PluginManifest,
    load_manifest,
    validate_manifest_data,
)
from rulesmith.plugins.resolver import DependencyResolver, resolve_plugins
from rulesmith.plugins.rules import (
    FragmentCheck,
    SkillRule,
    SkillRulesFragment,
    load_fragment,
    validate_fragment_data,
)

__all__ = [
    # Manifest and core
    "ManifestCheck",
    "Plugin",
    "PluginDiscovery",
    "PluginLoader",
    "PluginManifest",
    "load_manifest",
    "validate_manifest_data",
    # Rules
    "FragmentCheck",
    "SkillRule",
    "SkillRulesFragment",
    "load_fragment",
    "validate_fragment_data",
    # Resolution
    "DependencyResolver",
    "resolve_plugins",
]
