"""
Shared pytest fixtures for Rulesmith tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.

Plugin trees are built on disk in tmp_path with the ``write_plugin``
factory; ``manifest_data`` produces a valid plugin.json document to start
from.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import rulesmith.config as config
import rulesmith.constants as constants

# Environment variables that would leak the developer's setup into tests
ENV_PREFIX = "RULESMITH_"


@_pytest.fixture(autouse=True)
def isolated_env(
    monkeypatch: _pytest.MonkeyPatch,
    tmp_path_factory: _pytest.TempPathFactory,
) -> _pathlib.Path:
    """
    Remove RULESMITH_* variables and point the user config dir at an empty directory.

    Returns:
        The isolated user config directory.
    """
    for key in list(_os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    user_config = tmp_path_factory.mktemp("user-config")
    monkeypatch.setenv("RULESMITH_CONFIG_DIR", str(user_config))
    return user_config


# =============================================================================
# Documents
# =============================================================================


def _manifest_data(name: str, **overrides: _typing.Any) -> dict[str, _typing.Any]:
    data: dict[str, _typing.Any] = {
        "name": name,
        "version": "1.0.0",
        "displayName": name.replace("-", " ").title(),
        "description": f"Skills and rules for {name} projects",
        "author": "Test Author <test@example.com>",
        "compatibility": {"claudeCode": ">=1.0.0", "node": ">=18.0.0"},
        "provides": {"skills": [], "skillRulesFragment": constants.DEFAULT_FRAGMENT_FILE},
    }
    data.update(overrides)
    return data


@_pytest.fixture
def manifest_data() -> _typing.Callable[..., dict[str, _typing.Any]]:
    """Factory for valid plugin.json documents: manifest_data(name, **overrides)."""
    return _manifest_data


def skill_rule(
    *,
    type: str = "domain",
    enforcement: str = "suggest",
    priority: str = "medium",
    keywords: list[str] | None = None,
    path_patterns: list[str] | None = None,
) -> dict[str, _typing.Any]:
    rule: dict[str, _typing.Any] = {"type": type, "enforcement": enforcement, "priority": priority}
    if keywords is not None:
        rule["promptTriggers"] = {"keywords": keywords}
    if path_patterns is not None:
        rule["fileTriggers"] = {"pathPatterns": path_patterns}
    return rule


@_pytest.fixture
def make_rule() -> _typing.Callable[..., dict[str, _typing.Any]]:
    """Factory for skill rule dicts: make_rule(priority="high", keywords=["x"])."""
    return skill_rule


# =============================================================================
# Plugin trees
# =============================================================================


@_pytest.fixture
def plugins_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    path = tmp_path / "plugins"
    path.mkdir()
    return path


@_pytest.fixture
def write_plugin(
    plugins_dir: _pathlib.Path,
) -> _typing.Callable[..., _pathlib.Path]:
    """
    Factory that writes a plugin directory and returns its path.

    Usage:
        write_plugin("backend", dependencies=["core-rules"],
                     skills={"api-guidelines": skill_rule(keywords=["api"])},
                     files={"agents/reviewer.md": "Review {{BACKEND_DIR}}"})

    Each skill gets a SKILL.md and an entry in the rule fragment.
    """

    def _write(
        name: str,
        *,
        dependencies: _typing.Sequence[str] = (),
        skills: _typing.Mapping[str, dict[str, _typing.Any]] | None = None,
        files: _typing.Mapping[str, str] | None = None,
        settings_fragment: dict[str, _typing.Any] | None = None,
        template_paths: _typing.Mapping[str, str] | None = None,
        version: str = "1.0.0",
        directory: str | None = None,
    ) -> _pathlib.Path:
        plugin_dir = plugins_dir / (directory or name)
        plugin_dir.mkdir(parents=True)
        skills = dict(skills or {})

        provides: dict[str, _typing.Any] = {
            "skills": list(skills),
            "skillRulesFragment": constants.DEFAULT_FRAGMENT_FILE,
        }
        overrides: dict[str, _typing.Any] = {"version": version, "provides": provides}
        if dependencies:
            overrides["dependencies"] = {"plugins": list(dependencies)}
        if template_paths:
            overrides["templates"] = {"paths": dict(template_paths)}

        for skill_name in skills:
            skill_dir = plugin_dir / "skills" / skill_name
            skill_dir.mkdir(parents=True)
            (skill_dir / "SKILL.md").write_text(f"# {skill_name}\n")

        (plugin_dir / constants.DEFAULT_FRAGMENT_FILE).write_text(
            _json.dumps({"skills": skills}, indent=2)
        )

        if settings_fragment is not None:
            provides["settingsFragment"] = "settings.fragment.json"
            (plugin_dir / "settings.fragment.json").write_text(_json.dumps(settings_fragment))

        for relative, content in (files or {}).items():
            target = plugin_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            top = relative.split("/", 1)[0]
            if top in ("agents", "commands", "hooks") and "/" in relative:
                provides.setdefault(top, []).append(relative.split("/", 1)[1])

        (plugin_dir / constants.MANIFEST_FILE).write_text(
            _json.dumps(_manifest_data(name, **overrides), indent=2)
        )
        return plugin_dir

    return _write


# =============================================================================
# Projects
# =============================================================================


@_pytest.fixture
def project_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """An empty project with a package.json marker."""
    project = tmp_path / "project"
    project.mkdir()
    (project / "package.json").write_text('{"name": "demo-app"}\n')
    return project


@_pytest.fixture
def core_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """Core files providing every default essential hook."""
    core = tmp_path / "core"
    hooks = core / "hooks"
    hooks.mkdir(parents=True)
    (hooks / "skill-activation-prompt.sh").write_text("#!/bin/sh\nnpx tsx skill-activation-prompt.ts\n")
    (hooks / "skill-activation-prompt.ts").write_text("// project: {{PROJECT_NAME}}\n")
    (hooks / "post-tool-use-tracker.sh").write_text("#!/bin/sh\necho tracked\n")
    skill = core / "skills" / "skill-developer"
    skill.mkdir(parents=True)
    (skill / "SKILL.md").write_text("# Skill developer for {{PROJECT_NAME}}\n")
    return core


@_pytest.fixture
def settings(
    project_dir: _pathlib.Path,
    plugins_dir: _pathlib.Path,
    core_dir: _pathlib.Path,
) -> config.Settings:
    """Settings pointing at the temporary project, plugins and core."""
    return config.Settings(project_root=project_dir, plugins_dir=plugins_dir, core_dir=core_dir)
