"""
Plugin loading from directories.

PluginLoader reads a plugin directory and creates a Plugin instance
with the validated manifest. It also loads the plugin's rule and settings
fragments and checks that declared components exist on disk.
"""

from __future__ import annotations

import json as _json
import pathlib as _pathlib
import typing as _typing

import rulesmith.errors as errors
import rulesmith.plugins.manifest as manifest
import rulesmith.plugins.rules as rules


class PluginLoader:
    """
    Loads plugins from directories.

    A valid plugin directory must contain:
    - plugin.json (required) - Plugin manifest

    May optionally contain:
    - skills/<name>/SKILL.md - Skill definitions
    - agents/*.md, commands/*.md - Agent and command files
    - hooks/ - Hook scripts
    - skill-rules.fragment.json - Rule fragment (path declared in the manifest)
    """

    def load(self, plugin_dir: _pathlib.Path) -> manifest.Plugin:
        """
        Load a plugin from a directory.

        Args:
            plugin_dir: Path to plugin directory.

        Returns:
            Loaded Plugin instance.

        Raises:
            FileNotFoundError: If the directory or plugin.json doesn't exist.
            ManifestValidationError: If the manifest is invalid.
        """
        plugin_dir = plugin_dir.resolve()

        if not plugin_dir.is_dir():
            raise FileNotFoundError(f"Plugin directory not found: {plugin_dir}")

        plugin_manifest = manifest.load_manifest(manifest.manifest_path(plugin_dir))
        return manifest.Plugin(manifest=plugin_manifest, path=plugin_dir)

    def load_fragment(self, plugin: manifest.Plugin) -> rules.SkillRulesFragment | None:
        """
        Load the plugin's skill rules fragment.

        Returns:
            The validated fragment, or None if the plugin declares none.

        Raises:
            FileNotFoundError: If the declared fragment file is missing.
            FragmentValidationError: If the fragment is invalid.
        """
        path = plugin.fragment_path
        if path is None:
            return None
        return rules.load_fragment(path)

    def load_settings_fragment(self, plugin: manifest.Plugin) -> dict[str, _typing.Any] | None:
        """
        Load the plugin's settings fragment (a JSON object).

        Raises:
            FileNotFoundError: If the declared file is missing.
            ManifestValidationError: If the file isn't a JSON object.
        """
        path = plugin.settings_fragment_path
        if path is None:
            return None
        if not path.exists():
            raise FileNotFoundError(f"Settings fragment not found: {path}")
        try:
            data = _json.loads(path.read_text(encoding="utf-8"))
        except _json.JSONDecodeError as e:
            raise errors.ManifestValidationError(
                [f"/provides/settingsFragment: invalid JSON ({e})"], source=str(path)
            ) from e
        if not isinstance(data, dict):
            raise errors.ManifestValidationError(
                ["/provides/settingsFragment: must be a JSON object"], source=str(path)
            )
        return data

    def validate(self, plugin_dir: _pathlib.Path) -> list[str]:
        """
        Validate a plugin directory and return any problems.

        Checks that:
        - plugin.json exists and is valid
        - Declared components exist on disk
        - The declared rule fragment is valid

        Args:
            plugin_dir: Path to plugin directory.

        Returns:
            List of problem messages (empty if fully valid).

        Raises:
            FileNotFoundError: If plugin.json doesn't exist.
            ManifestValidationError: If manifest is invalid.
        """
        plugin = self.load(plugin_dir)
        provides = plugin.manifest.provides
        problems: list[str] = []

        for skill_name in provides.skills:
            if not (plugin.skills_path / skill_name / "SKILL.md").exists():
                problems.append(f"Missing skill file: skills/{skill_name}/SKILL.md")

        for agent_name in provides.agents:
            if not (plugin.agents_path / agent_name).exists():
                problems.append(f"Missing agent file: agents/{agent_name}")

        for command_name in provides.commands:
            if not (plugin.commands_path / command_name).exists():
                problems.append(f"Missing command file: commands/{command_name}")

        for hook_name in provides.hooks:
            if not (plugin.hooks_path / hook_name).exists():
                problems.append(f"Missing hook file: hooks/{hook_name}")

        fragment_path = plugin.fragment_path
        if fragment_path is not None:
            if not fragment_path.exists():
                problems.append(
                    f"Missing skill rules fragment: {provides.skill_rules_fragment}"
                )
            else:
                try:
                    rules.load_fragment(fragment_path)
                except errors.FragmentValidationError as e:
                    problems.extend(e.errors)

        settings_path = plugin.settings_fragment_path
        if settings_path is not None and not settings_path.exists():
            problems.append(f"Missing settings fragment: {provides.settings_fragment}")

        return problems
