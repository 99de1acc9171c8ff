"""
Tests for the composition pipeline.

Tests verify that:
- A full run installs core, plugins, merged rules, settings and state
- Validation and resolution errors are raised before anything is written
- Dry runs compute everything and write nothing
- Template context layers resolve in order
- Re-running needs force and never clobbers user edits without it
"""

import json as _json
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import rulesmith
import rulesmith.config as config
import rulesmith.engine as engine
import rulesmith.errors as errors
import rulesmith.reporting as reporting

PluginFactory = _typing.Callable[..., _pathlib.Path]
RuleFactory = _typing.Callable[..., dict[str, _typing.Any]]


def tree_snapshot(root: _pathlib.Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()
    }


class FakeDetector:
    def __init__(self, detected: dict[str, str]) -> None:
        self.detected = detected
        self.calls: list[_pathlib.Path] = []

    def detect(self, project_root: _pathlib.Path) -> dict[str, str]:
        self.calls.append(project_root)
        return self.detected


class RecordingDependencyInstaller:
    def __init__(self) -> None:
        self.calls: list[tuple[_pathlib.Path, bool]] = []

    def install(self, hooks_dir: _pathlib.Path, *, dry_run: bool) -> None:
        self.calls.append((hooks_dir, dry_run))


@_pytest.fixture
def sample_plugins(write_plugin: PluginFactory, make_rule: RuleFactory) -> None:
    """core-rules <- backend, plus an unrelated frontend plugin."""
    write_plugin(
        "core-rules",
        skills={"code-style": make_rule(priority="low", keywords=["style"])},
        settings_fragment={
            "permissions": {"allow": ["Read"]},
            "hooks": {"Stop": [{"hooks": [{"type": "command", "command": "stop.sh"}]}]},
        },
    )
    write_plugin(
        "backend",
        dependencies=["core-rules"],
        skills={
            "api-guidelines": make_rule(
                priority="high", keywords=["api"], path_patterns=["{{BACKEND_DIR}}/**/*.ts"]
            ),
            "code-style": make_rule(enforcement="warn", priority="critical", keywords=["lint"]),
        },
        files={"agents/api-reviewer.md": "Review {{BACKEND_DIR}} in {{PROJECT_NAME}}\n"},
        settings_fragment={
            "permissions": {"allow": ["Bash"]},
            "hooks": {"Stop": [{"hooks": [{"type": "command", "command": "check.sh"}]}]},
        },
        template_paths={"BACKEND_DIR": "server"},
    )
    write_plugin("frontend", skills={"react": make_rule(keywords=["react"])})


class TestComposerRun:
    def test_full_run(
        self,
        settings: config.Settings,
        project_dir: _pathlib.Path,
        sample_plugins: None,
    ) -> None:
        reporter = reporting.Reporter()

        result = engine.Composer(settings, reporter).run(engine.ComposeRequest(plugins=["backend"]))

        assert result.install_order == ["core-rules", "backend"]
        root = project_dir / ".claude"

        rules = _json.loads((root / "skills" / "skill-rules.json").read_text())
        assert list(rules["skills"]) == ["code-style", "api-guidelines"]
        code_style = rules["skills"]["code-style"]
        assert code_style["enforcement"] == "warn"
        assert code_style["promptTriggers"]["keywords"] == ["style", "lint"]
        api = rules["skills"]["api-guidelines"]
        assert api["fileTriggers"]["pathPatterns"] == ["server/**/*.ts"]

        settings_json = _json.loads((root / "settings.json").read_text())
        assert settings_json["permissions"] == {
            "editPermissions": "auto-accept",
            "writePermissions": "auto-accept",
            "allow": ["Read", "Bash"],
        }
        assert [h["hooks"][0]["command"] for h in settings_json["hooks"]["Stop"]] == [
            "stop.sh",
            "check.sh",
        ]
        assert settings_json["enabledMcpjsonServers"] == []

        assert (root / "agents" / "api-reviewer.md").read_text() == "Review server in project\n"
        assert (root / "skills" / "api-guidelines" / "SKILL.md").exists()
        assert not (root / "skills" / "react").exists()
        assert (root / "hooks" / "skill-activation-prompt.ts").read_text() == "// project: project\n"

        record = _json.loads((project_dir / ".claude-code-cli.json").read_text())
        assert record["version"] == rulesmith.__version__
        assert [p["name"] for p in record["plugins"]] == ["core-rules", "backend"]

        assert "# Claude Code" in (project_dir / ".gitignore").read_text()
        assert result.verification is not None
        assert result.verification.valid
        assert result.success
        assert result.failures == []

    def test_core_only(self, settings: config.Settings, project_dir: _pathlib.Path) -> None:
        """An empty selection installs just the core files."""
        result = engine.Composer(settings).run(engine.ComposeRequest(plugins=[]))

        assert result.install_order == []
        assert result.success
        rules = _json.loads((project_dir / ".claude" / "skills" / "skill-rules.json").read_text())
        assert rules == {"skills": {}}

    def test_missing_plugin_writes_nothing(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        before = tree_snapshot(project_dir)

        with _pytest.raises(errors.MissingPluginError, match="Plugin not found: mobile"):
            engine.Composer(settings).run(engine.ComposeRequest(plugins=["mobile"]))

        assert tree_snapshot(project_dir) == before
        assert not (project_dir / ".claude").exists()

    def test_invalid_fragment_writes_nothing(
        self,
        settings: config.Settings,
        project_dir: _pathlib.Path,
        write_plugin: PluginFactory,
        make_rule: RuleFactory,
    ) -> None:
        rule = make_rule()
        rule["promptTriggers"] = {"intentPatterns": ["(broken"]}
        write_plugin("backend", skills={"api": rule})

        with _pytest.raises(errors.FragmentValidationError):
            engine.Composer(settings).run(engine.ComposeRequest(plugins=["backend"]))

        assert not (project_dir / ".claude").exists()

    def test_cycle_writes_nothing(
        self, settings: config.Settings, project_dir: _pathlib.Path, write_plugin: PluginFactory
    ) -> None:
        write_plugin("alpha", dependencies=["beta"])
        write_plugin("beta", dependencies=["alpha"])

        with _pytest.raises(errors.CircularDependencyError):
            engine.Composer(settings).run(engine.ComposeRequest(plugins=["alpha"]))

        assert not (project_dir / ".claude").exists()

    def test_dry_run_writes_nothing(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        before = tree_snapshot(project_dir)
        reporter = reporting.Reporter()

        result = engine.Composer(settings, reporter).run(
            engine.ComposeRequest(plugins=["backend"], dry_run=True)
        )

        assert tree_snapshot(project_dir) == before
        assert result.dry_run
        assert result.verification is None
        assert result.install_order == ["core-rules", "backend"]
        assert list(result.composition.rules["skills"]) == ["code-style", "api-guidelines"]
        assert any(e.message.startswith("[DRY RUN]") for e in reporter.events)

    def test_rerun_requires_force(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        composer = engine.Composer(settings)
        composer.run(engine.ComposeRequest(plugins=["backend"]))

        with _pytest.raises(errors.InstallationConflictError):
            composer.run(engine.ComposeRequest(plugins=["backend"]))

    def test_existing_tree_requires_force(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        (project_dir / ".claude").mkdir()

        with _pytest.raises(errors.DestinationExistsError):
            engine.Composer(settings).run(engine.ComposeRequest(plugins=["backend"]))

    def test_force_rerun_overwrites(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        composer = engine.Composer(settings)
        composer.run(engine.ComposeRequest(plugins=["backend"]))
        agent = project_dir / ".claude" / "agents" / "api-reviewer.md"
        agent.write_text("edited\n")

        result = composer.run(engine.ComposeRequest(plugins=["backend"], force=True))

        assert result.success
        assert agent.read_text() == "Review server in project\n"

    def test_force_rerun_records_new_selection(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        composer = engine.Composer(settings)
        composer.run(engine.ComposeRequest(plugins=["backend"]))

        composer.run(engine.ComposeRequest(plugins=["frontend"], force=True))

        record = _json.loads((project_dir / ".claude-code-cli.json").read_text())
        assert [p["name"] for p in record["plugins"]] == ["frontend"]
        rules = _json.loads((project_dir / ".claude" / "skills" / "skill-rules.json").read_text())
        assert list(rules["skills"]) == ["react"]

    def test_custom_paths_override_and_are_recorded(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        result = engine.Composer(settings).run(
            engine.ComposeRequest(plugins=["backend"], custom_paths={"backendDir": "api"})
        )

        rules = result.composition.rules
        assert rules["skills"]["api-guidelines"]["fileTriggers"]["pathPatterns"] == ["api/**/*.ts"]
        assert result.state.custom_paths == {"BACKEND_DIR": "api"}
        agent = project_dir / ".claude" / "agents" / "api-reviewer.md"
        assert agent.read_text() == "Review api in project\n"

    def test_dependency_installer_runs_when_hooks_need_it(
        self,
        settings: config.Settings,
        core_dir: _pathlib.Path,
        project_dir: _pathlib.Path,
    ) -> None:
        (core_dir / "hooks" / "package.json").write_text('{"name": "hooks"}\n')
        deps = RecordingDependencyInstaller()

        engine.Composer(settings, dependency_installer=deps).run(engine.ComposeRequest(plugins=[]))

        assert deps.calls == [(project_dir / ".claude" / "hooks", False)]

    def test_dependency_installer_skipped_on_request(
        self, settings: config.Settings, core_dir: _pathlib.Path
    ) -> None:
        (core_dir / "hooks" / "package.json").write_text('{"name": "hooks"}\n')
        deps = RecordingDependencyInstaller()

        engine.Composer(settings, dependency_installer=deps).run(
            engine.ComposeRequest(plugins=[], install_dependencies=False)
        )

        assert deps.calls == []

    def test_missing_core_fails_verification(
        self, settings: config.Settings, tmp_path: _pathlib.Path
    ) -> None:
        """Without core hooks the essential files are missing."""
        settings = settings.model_copy(update={"core_dir": tmp_path / "no-core"})
        reporter = reporting.Reporter()

        result = engine.Composer(settings, reporter).run(engine.ComposeRequest(plugins=[]))

        assert not result.success
        assert result.verification is not None
        assert "Missing essential file: hooks/skill-activation-prompt.sh" in result.verification.errors
        assert "Missing essential file: hooks/skill-activation-prompt.sh" in reporter.errors

    def test_fresh_reporter_is_kept(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        sink = reporting.Reporter()
        composer = engine.Composer(settings, sink)

        composer.run(engine.ComposeRequest(plugins=["backend"]))

        assert composer.reporter is sink
        assert "Created .claude directory structure" in [
            e.message for e in sink.events if e.source == "installer"
        ]

    def test_invalid_plugin_reports_manifest_errors(
        self,
        settings: config.Settings,
        project_dir: _pathlib.Path,
        plugins_dir: _pathlib.Path,
        write_plugin: PluginFactory,
        manifest_data: _typing.Callable[..., dict[str, _typing.Any]],
    ) -> None:
        write_plugin("backend", dependencies=["bad"])
        bad = plugins_dir / "bad"
        bad.mkdir()
        (bad / "plugin.json").write_text(
            _json.dumps(manifest_data("bad", version="one", bogus=True))
        )

        for requested in (["bad"], ["backend"]):
            with _pytest.raises(errors.ManifestValidationError) as excinfo:
                engine.Composer(settings).run(engine.ComposeRequest(plugins=requested))
            assert any(e.startswith("/version: ") for e in excinfo.value.errors)
            assert 'root: unexpected property "bogus"' in excinfo.value.errors

        assert not (project_dir / ".claude").exists()
        assert not (project_dir / ".claude-code-cli.json").exists()

    def test_missing_rules_fragment_warns(
        self, settings: config.Settings, plugins_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        (plugins_dir / "backend" / "skill-rules.fragment.json").unlink()
        reporter = reporting.Reporter()

        result = engine.Composer(settings, reporter).run(engine.ComposeRequest(plugins=["backend"]))

        assert result.success
        assert any(w.startswith("Skill rules fragment not found for backend") for w in reporter.warnings)
        assert list(result.composition.rules["skills"]) == ["code-style"]
        assert result.composition.rules["skills"]["code-style"]["enforcement"] == "suggest"

    def test_missing_settings_fragment_warns(
        self,
        settings: config.Settings,
        project_dir: _pathlib.Path,
        plugins_dir: _pathlib.Path,
        sample_plugins: None,
    ) -> None:
        (plugins_dir / "backend" / "settings.fragment.json").unlink()
        reporter = reporting.Reporter()

        result = engine.Composer(settings, reporter).run(engine.ComposeRequest(plugins=["backend"]))

        assert result.success
        assert any(w.startswith("Settings fragment not found for backend") for w in reporter.warnings)
        settings_json = _json.loads((project_dir / ".claude" / "settings.json").read_text())
        assert "Bash" not in settings_json["permissions"]["allow"]

    def test_rerun_conflict_names_installed_plugins(
        self, settings: config.Settings, sample_plugins: None
    ) -> None:
        composer = engine.Composer(settings)
        composer.run(engine.ComposeRequest(plugins=["backend"]))

        with _pytest.raises(errors.InstallationConflictError, match="installed: core-rules, backend"):
            composer.run(engine.ComposeRequest(plugins=["frontend"]))

    def test_force_rerun_keeps_recorded_settings(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        composer = engine.Composer(settings)
        composer.run(engine.ComposeRequest(plugins=["backend"]))
        record_path = project_dir / ".claude-code-cli.json"
        record = _json.loads(record_path.read_text())
        record["settings"] = {"autoUpdate": True}
        record_path.write_text(_json.dumps(record))

        result = composer.run(engine.ComposeRequest(plugins=["frontend"], force=True))

        assert result.composition.previous_state is not None
        assert result.composition.previous_state.plugin_names == ["core-rules", "backend"]
        assert _json.loads(record_path.read_text())["settings"] == {"autoUpdate": True}
        assert "Replacing installation of: core-rules, backend" in [
            e.message for e in composer.reporter.events
        ]

    def test_unreadable_record_needs_force(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        (project_dir / ".claude-code-cli.json").write_text('{"version": 3}')

        with _pytest.raises(errors.InstallationConflictError):
            engine.Composer(settings).run(engine.ComposeRequest(plugins=["backend"]))

        reporter = reporting.Reporter()
        result = engine.Composer(settings, reporter).run(
            engine.ComposeRequest(plugins=["backend"], force=True)
        )

        assert result.success
        assert result.composition.previous_state is None
        assert any(w.startswith("Ignoring unreadable installation record") for w in reporter.warnings)
        record = _json.loads((project_dir / ".claude-code-cli.json").read_text())
        assert [p["name"] for p in record["plugins"]] == ["core-rules", "backend"]


class TestComposerCompose:
    def test_context_layers(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        """Defaults < plugin templates < detected values < explicit overrides."""
        detector = FakeDetector({"BACKEND_DIR": "detected", "FRONTEND_DIR": "client"})
        composer = engine.Composer(settings, detector=detector)

        composition = composer.compose(
            engine.ComposeRequest(plugins=["backend"], custom_paths={"FRONTEND_DIR": "ui"})
        )

        context = composition.context
        assert context["PROJECT_NAME"] == "project"
        assert context["PROJECT_ROOT"] == str(project_dir.resolve())
        assert context["BACKEND_DIR"] == "detected"
        assert context["FRONTEND_DIR"] == "ui"
        assert detector.calls == [project_dir.resolve()]

    def test_missing_variables_warn(
        self,
        settings: config.Settings,
        write_plugin: PluginFactory,
        make_rule: RuleFactory,
    ) -> None:
        write_plugin("web", skills={"ui": make_rule(path_patterns=["{{FRONTEND_DIR}}/**"])})
        reporter = reporting.Reporter()

        with _pytest.warns(errors.TemplateMissingVariableWarning, match="FRONTEND_DIR"):
            composition = engine.Composer(settings, reporter).compose(
                engine.ComposeRequest(plugins=["web"])
            )

        assert composition.missing_variables == ("FRONTEND_DIR",)
        assert reporter.warnings == ["Missing template variables: FRONTEND_DIR"]
        patterns = composition.rules["skills"]["ui"]["fileTriggers"]["pathPatterns"]
        assert patterns == ["{{FRONTEND_DIR}}/**"]

    def test_merge_warnings_collected(
        self, settings: config.Settings, write_plugin: PluginFactory, make_rule: RuleFactory
    ) -> None:
        write_plugin("quiet", skills={"silent": make_rule()})

        composition = engine.Composer(settings).compose(engine.ComposeRequest(plugins=["quiet"]))

        assert composition.merge_warnings == [
            'Skill "silent" has no trigger patterns. It will never activate.'
        ]


class TestComposeResult:
    def test_to_dict(
        self, settings: config.Settings, project_dir: _pathlib.Path, sample_plugins: None
    ) -> None:
        result = engine.Composer(settings).run(engine.ComposeRequest(plugins=["backend"], dry_run=True))

        data = result.to_dict()

        assert data["success"] is True
        assert data["dry_run"] is True
        assert data["install_order"] == ["core-rules", "backend"]
        assert data["skills"] == ["code-style", "api-guidelines"]
        assert data["verification"] is None
