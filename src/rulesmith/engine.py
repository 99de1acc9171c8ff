"""
End-to-end composition pipeline.

Composer.run() takes a plugin selection and produces an installed tree:

1. Discover the plugins available in the plugins directory.
2. Refuse to touch an already-initialized project unless forced.
3. Resolve the install order and load every manifest and fragment.
4. Build the template context and look for missing variables.
5. Merge skill rule fragments and settings.
6. Install core files, plugins and the merged artifacts.
7. Escalate failures on essential files, then verify the result.

Steps 1-5 only read; any validation or resolution error is raised before
the project is modified. Composer.compose() runs just those steps, which
is what dry runs and previews use.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing
import warnings as _warnings

import rulesmith
import rulesmith.compose.deep_merge as deep_merge
import rulesmith.compose.fragments as fragments
import rulesmith.compose.templates as templates
import rulesmith.config as config
import rulesmith.errors as errors
import rulesmith.install.installer as installer
import rulesmith.install.state as state
import rulesmith.install.verifier as verifier
import rulesmith.plugins.discovery as discovery
import rulesmith.plugins.loader as loader
import rulesmith.plugins.manifest as manifest
import rulesmith.plugins.resolver as resolver
import rulesmith.plugins.rules as rules
import rulesmith.reporting as reporting

_logger = _logging.getLogger(__name__)

BASE_PERMISSIONS: dict[str, str] = {
    "editPermissions": "auto-accept",
    "writePermissions": "auto-accept",
}


class ProjectDetector(_typing.Protocol):
    """Derives template variables from the project's structure."""

    def detect(self, project_root: _pathlib.Path) -> _abc.Mapping[str, _typing.Any]: ...


class HookDependencyInstaller(_typing.Protocol):
    """Installs the packages the hook scripts need (e.g. ``npm install``)."""

    def install(self, hooks_dir: _pathlib.Path, *, dry_run: bool) -> None: ...


@_dataclasses.dataclass
class ComposeRequest:
    """What to install."""

    plugins: _abc.Sequence[str]
    force: bool = False
    dry_run: bool = False
    custom_paths: _abc.Mapping[str, str] = _dataclasses.field(default_factory=dict)
    """Template variable overrides; they also end up in the state record."""

    install_dependencies: bool = True


@_dataclasses.dataclass
class Composition:
    """Everything computed before the first write."""

    project_root: _pathlib.Path
    plugins: list[manifest.Plugin]
    context: templates.TemplateContext
    rules: dict[str, _typing.Any]
    settings: dict[str, _typing.Any]
    merge_warnings: list[str] = _dataclasses.field(default_factory=list)
    missing_variables: tuple[str, ...] = ()
    previous_state: state.InstallationState | None = None
    """The record of an earlier installation being replaced, if readable."""

    @property
    def install_order(self) -> list[str]:
        return [p.name for p in self.plugins]


@_dataclasses.dataclass
class ComposeResult:
    """Outcome of Composer.run()."""

    composition: Composition
    state: state.InstallationState
    dry_run: bool
    failures: list[errors.FileSystemError] = _dataclasses.field(default_factory=list)
    verification: verifier.VerificationReport | None = None

    @property
    def install_order(self) -> list[str]:
        return self.composition.install_order

    @property
    def success(self) -> bool:
        if self.failures:
            return False
        return self.verification is None or self.verification.valid

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "project_root": str(self.composition.project_root),
            "install_order": self.install_order,
            "skills": list(self.composition.rules.get("skills", {})),
            "warnings": list(self.composition.merge_warnings),
            "missing_variables": list(self.composition.missing_variables),
            "failures": [str(f) for f in self.failures],
            "verification": self.verification.to_dict() if self.verification else None,
        }


class Composer:
    """Runs the composition pipeline for one project."""

    def __init__(
        self,
        settings: config.Settings,
        reporter: reporting.Reporter | None = None,
        *,
        detector: ProjectDetector | None = None,
        dependency_installer: HookDependencyInstaller | None = None,
        plugin_loader: loader.PluginLoader | None = None,
    ) -> None:
        self._settings = settings
        self._reporter = reporter if reporter is not None else reporting.Reporter()
        self._detector = detector
        self._dependency_installer = dependency_installer
        self._loader = plugin_loader or loader.PluginLoader()

    @property
    def reporter(self) -> reporting.Reporter:
        return self._reporter

    @property
    def project_root(self) -> _pathlib.Path:
        return self._settings.get_project_root()

    def scan(self) -> discovery.DiscoveryResult:
        """Plugins available for installation, plus the ones that failed to load."""
        plugins_dir = self._settings.get_plugins_dir()
        found = discovery.PluginDiscovery(plugins_dir, self._loader).scan()
        self._reporter.debug(
            f"Found {len(found.plugins)} plugin(s) in {plugins_dir}", source="discovery"
        )
        return found

    def discover(self) -> dict[str, manifest.Plugin]:
        """Plugins available for installation, by name."""
        return self.scan().plugins

    # =========================================================================
    # Read-only phase
    # =========================================================================

    def compose(self, request: ComposeRequest) -> Composition:
        """
        Validate, resolve and merge without writing anything.

        Raises:
            InstallationConflictError: If the project is initialized and
                force is not set.
            ResolutionError: If the selection can't be ordered.
            ValidationFailure: If a manifest or fragment is invalid.
        """
        project_root = self.project_root
        found = self.scan()

        previous = self._previous_state(project_root, request.force)

        plugins = resolver.resolve_plugins(
            request.plugins, found.plugins, self._reporter, invalid=found.invalid
        )
        rule_fragments = [self._load_fragment(p) for p in plugins]
        settings_fragments = [self._load_settings_fragment(p) for p in plugins]

        context = self.build_context(project_root, plugins, request.custom_paths)

        fragment_trees = [f.to_json() for f in rule_fragments if f is not None]
        setting_trees = [s for s in settings_fragments if s is not None]
        missing = self._check_variables([*fragment_trees, *setting_trees], context)

        merged = fragments.FragmentMerger(self._reporter).merge(fragment_trees, context)
        settings = self.build_settings(
            [templates.replace_deep(s, context) for s in setting_trees]
        )

        return Composition(
            project_root=project_root,
            plugins=plugins,
            context=context,
            rules=merged.rules,
            settings=settings,
            merge_warnings=merged.warnings,
            missing_variables=missing,
            previous_state=previous,
        )

    def build_context(
        self,
        project_root: _pathlib.Path,
        plugins: _abc.Sequence[manifest.Plugin],
        overrides: _abc.Mapping[str, str] | None = None,
    ) -> templates.TemplateContext:
        """
        Layer the template context.

        Later layers win: defaults, each plugin's template paths in install
        order, detected values, explicit overrides.
        """
        detected = self._detector.detect(project_root) if self._detector is not None else None
        return templates.TemplateContext.layered(
            templates.default_context(project_root, self._settings.claude_dir),
            *(p.manifest.templates.paths for p in plugins),
            detected,
            overrides,
        )

    def build_settings(
        self,
        plugin_settings: _abc.Sequence[_abc.Mapping[str, _typing.Any]],
    ) -> dict[str, _typing.Any]:
        """
        Merge plugin settings fragments onto the base settings.

        Hook registrations are appended per event; everything else is
        deep-merged in install order.
        """
        hooks = deep_merge.merge_hooks({}, [s.get("hooks", {}) for s in plugin_settings])
        base: dict[str, _typing.Any] = {
            "hooks": {},
            "permissions": dict(BASE_PERMISSIONS),
            "enabledMcpjsonServers": [],
        }
        merged = deep_merge.merge_settings(
            base,
            [{k: v for k, v in s.items() if k != "hooks"} for s in plugin_settings],
        )
        merged["hooks"] = hooks
        return merged

    def _check_variables(
        self,
        trees: _abc.Sequence[_typing.Any],
        context: templates.TemplateContext,
    ) -> tuple[str, ...]:
        check = templates.validate_deep(list(trees), context)
        if not check.valid:
            message = f"Missing template variables: {', '.join(check.missing)}"
            self._reporter.warning(message, source="templates")
            _warnings.warn(message, errors.TemplateMissingVariableWarning, stacklevel=3)
        return check.missing

    def _previous_state(
        self, project_root: _pathlib.Path, force: bool
    ) -> state.InstallationState | None:
        path = state.state_path(project_root, self._settings.state_file)
        if not path.exists():
            return None
        try:
            previous = state.load_state(path)
        except errors.StateValidationError as e:
            if not force:
                raise errors.InstallationConflictError(path) from e
            self._reporter.warning(
                f"Ignoring unreadable installation record {path}: {'; '.join(e.errors)}",
                source="composer",
            )
            return None
        if not force:
            raise errors.InstallationConflictError(path, previous.plugin_names)
        self._reporter.info(
            f"Replacing installation of: {', '.join(previous.plugin_names) or '(core only)'}",
            source="composer",
        )
        return previous

    def _load_fragment(self, plugin: manifest.Plugin) -> rules.SkillRulesFragment | None:
        path = plugin.fragment_path
        if path is not None and not path.exists():
            self._reporter.warning(
                f"Skill rules fragment not found for {plugin.name}: {path}", source="composer"
            )
            return None
        return self._loader.load_fragment(plugin)

    def _load_settings_fragment(self, plugin: manifest.Plugin) -> dict[str, _typing.Any] | None:
        path = plugin.settings_fragment_path
        if path is not None and not path.exists():
            self._reporter.warning(
                f"Settings fragment not found for {plugin.name}: {path}", source="composer"
            )
            return None
        return self._loader.load_settings_fragment(plugin)

    # =========================================================================
    # Full run
    # =========================================================================

    def run(self, request: ComposeRequest) -> ComposeResult:
        """
        Compose and install.

        Raises:
            InstallationConflictError: If the project is initialized and
                force is not set.
            DestinationExistsError: If the destination tree exists and
                force is not set.
            ResolutionError: If the selection can't be ordered.
            ValidationFailure: If a manifest or fragment is invalid.
            InstallationError: If essential files couldn't be written.
        """
        composition = self.compose(request)
        settings = self._settings

        target = installer.Installer(
            composition.project_root,
            claude_dir=settings.claude_dir,
            state_file=settings.state_file,
            essential_files=settings.essential_files,
            reporter=self._reporter,
            force=request.force,
            dry_run=request.dry_run,
        )

        target.create_directory()

        core_dir = settings.get_core_dir()
        if core_dir.is_dir():
            target.install_core(core_dir, composition.context)
        else:
            self._reporter.debug(f"No core directory at {core_dir}", source="installer")

        for plugin in composition.plugins:
            target.install_plugin(plugin, composition.context)

        record = state.InstallationState.create(
            rulesmith.__version__,
            composition.plugins,
            {templates.normalize_key(k): v for k, v in request.custom_paths.items()},
            settings=composition.previous_state.settings if composition.previous_state else None,
        )

        target.write_skill_rules(composition.rules)
        target.write_settings(composition.settings)
        target.write_state(record)
        target.update_gitignore()

        hooks_dir = target.root / "hooks"
        if (
            request.install_dependencies
            and self._dependency_installer is not None
            and (hooks_dir / "package.json").exists()
        ):
            self._dependency_installer.install(hooks_dir, dry_run=request.dry_run)

        essential = target.essential_failures()
        if essential:
            raise errors.InstallationError(essential)

        result = ComposeResult(
            composition=composition,
            state=record,
            dry_run=request.dry_run,
            failures=target.failures,
        )

        if request.dry_run:
            self._reporter.info("Dry run complete; nothing was written", source="composer")
            return result

        result.verification = verifier.Verifier(
            composition.project_root,
            settings.claude_dir,
            settings.essential_files,
        ).verify()
        for error in result.verification.errors:
            self._reporter.error(error, source="verifier")
        for warning in result.verification.warnings:
            self._reporter.warning(warning, source="verifier")

        if result.success:
            self._reporter.success(
                f"Installed {len(composition.plugins)} plugin(s) into {composition.project_root}",
                source="composer",
            )
        _logger.debug("Composition finished: %s", result.to_dict())
        return result
