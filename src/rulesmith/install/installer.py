"""
Writes the composed tree into a project.

Every step is safe to re-run. Without force, files that already exist in
the project are left untouched; with force they are replaced by freshly
substituted content. In dry-run mode every check still happens and each
step reports what it would have done, but nothing is written.

Per-file I/O problems don't stop the installation: they are recorded in
Installer.failures and reported as warnings. The caller decides what to
do about failures that touched essential files (essential_failures()).
"""

from __future__ import annotations

import collections.abc as _abc
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import rulesmith.constants as constants
import rulesmith.errors as errors
import rulesmith.install.planning as planning
import rulesmith.install.state as state
import rulesmith.plugins.manifest as manifest
import rulesmith.reporting as reporting

_logger = _logging.getLogger(__name__)

_SOURCE = "installer"


def format_json(data: _typing.Any) -> str:
    """Serialize ``data`` the way every written artifact is formatted."""
    return _json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json(data: _typing.Any, path: _pathlib.Path) -> None:
    """
    Write ``data`` to ``path`` as formatted JSON.

    Creates parent directories as needed.

    Raises:
        OSError: If the file can't be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_json(data), encoding="utf-8")


class Installer:
    """
    Installs core files and plugins into ``<project_root>/<claude_dir>``.

    Example:
        installer = Installer(project_root, reporter=reporter, force=True)
        installer.create_directory()
        for plugin in plugins:
            installer.install_plugin(plugin, context)
        installer.write_skill_rules(merged.rules)
    """

    def __init__(
        self,
        project_root: _pathlib.Path,
        *,
        claude_dir: str = constants.DEFAULT_CLAUDE_DIR,
        state_file: str = constants.DEFAULT_STATE_FILE,
        essential_files: _abc.Sequence[str] = constants.DEFAULT_ESSENTIAL_FILES,
        reporter: reporting.Reporter | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> None:
        self._project_root = project_root
        self._claude_dir = claude_dir
        self._state_file = state_file
        self._essential_files = frozenset(essential_files)
        self._reporter = reporter if reporter is not None else reporting.Reporter()
        self._force = force
        self._dry_run = dry_run
        self._failures: list[errors.FileSystemError] = []

    @property
    def project_root(self) -> _pathlib.Path:
        return self._project_root

    @property
    def root(self) -> _pathlib.Path:
        """The destination tree (e.g. ``<project>/.claude``)."""
        return self._project_root / self._claude_dir

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def failures(self) -> list[errors.FileSystemError]:
        """Per-file failures recorded so far."""
        return list(self._failures)

    def _relative(self, path: _pathlib.Path) -> str:
        try:
            return path.relative_to(self._project_root).as_posix()
        except ValueError:
            return str(path)

    def _fail(self, path: _pathlib.Path, exc: Exception) -> None:
        failure = errors.FileSystemError(path, str(exc))
        self._failures.append(failure)
        self._reporter.warning(f"Failed to write {self._relative(path)}: {exc}", source=_SOURCE)

    # =========================================================================
    # Scaffold
    # =========================================================================

    def create_directory(self) -> None:
        """
        Create the destination tree and its standard subdirectories.

        Raises:
            DestinationExistsError: If the tree exists and force is not set.
        """
        root = self.root
        if root.exists():
            if not self._force:
                raise errors.DestinationExistsError(root)
            self._reporter.warning(f"{self._claude_dir} directory exists, overwriting...", source=_SOURCE)

        if self._dry_run:
            self._reporter.info(f"[DRY RUN] Would create {self._claude_dir}/", source=_SOURCE)
            return

        for subdir in constants.SCAFFOLD_SUBDIRS:
            (root / subdir).mkdir(parents=True, exist_ok=True)
        self._reporter.success(f"Created {self._claude_dir} directory structure", source=_SOURCE)

    # =========================================================================
    # Copying
    # =========================================================================

    def copy_directory(
        self,
        src: _pathlib.Path,
        dest: _pathlib.Path,
        context: _abc.Mapping[str, _typing.Any],
    ) -> list[planning.FileAction]:
        """
        Copy a directory tree with template substitution.

        Args:
            src: Source directory.
            dest: Destination directory.
            context: Template variables for text files.

        Returns:
            The executed (or, in dry-run mode, reported) plan.
        """
        if not src.is_dir():
            self._reporter.warning(f"Source directory not found: {src}", source=_SOURCE)
            return []

        actions = planning.plan_copy(src, dest, force=self._force)
        for action in actions:
            self._execute(action, context)
        return actions

    def _execute(self, action: planning.FileAction, context: _abc.Mapping[str, _typing.Any]) -> None:
        target = self._relative(action.destination)

        if action.action is planning.Action.SKIP_EXISTING:
            self._reporter.warning(f"Skipping existing file: {target}", source=_SOURCE)
            return

        if self._dry_run:
            self._reporter.info(
                f"[DRY RUN] Would {action.action.value}: {action.source} → {target}",
                source=_SOURCE,
            )
            return

        try:
            content = planning.render(action, context)
            action.destination.parent.mkdir(parents=True, exist_ok=True)
            action.destination.write_bytes(content)
        except (OSError, UnicodeDecodeError) as e:
            self._fail(action.destination, e)
            return

        self._reporter.debug(f"Copied: {target}", source=_SOURCE)

    def make_executable(self, paths: _abc.Iterable[_pathlib.Path]) -> list[_pathlib.Path]:
        """
        Set the executable mode on each path.

        Returns:
            Paths whose mode was changed (none in dry-run mode).
        """
        changed: list[_pathlib.Path] = []
        if self._dry_run:
            return changed
        for path in paths:
            try:
                path.chmod(constants.EXECUTABLE_MODE)
            except OSError as e:
                self._fail(path, e)
                continue
            changed.append(path)
        return changed

    def _mark_hooks_executable(self) -> list[_pathlib.Path]:
        hooks_dir = self.root / "hooks"
        return self.make_executable(sorted(hooks_dir.glob(constants.HOOK_SCRIPT_GLOB)))

    def install_core(self, core_dir: _pathlib.Path, context: _abc.Mapping[str, _typing.Any]) -> None:
        """
        Copy the core hooks and the skill-developer skill.

        Args:
            core_dir: Directory holding ``hooks/`` and ``skills/skill-developer``.
            context: Template variables.
        """
        self.copy_directory(core_dir / "hooks", self.root / "hooks", context)
        self._mark_hooks_executable()
        self.copy_directory(
            core_dir / "skills" / "skill-developer",
            self.root / "skills" / "skill-developer",
            context,
        )
        self._reporter.success("Installed core infrastructure", source=_SOURCE)

    def install_plugin(self, plugin: manifest.Plugin, context: _abc.Mapping[str, _typing.Any]) -> None:
        """
        Copy one plugin's skills, agents, commands and hooks.

        Each skill directory under the plugin's ``skills/`` lands in
        ``skills/<name>``; agents, commands and hooks are merged into the
        shared directories of the same name.
        """
        if plugin.skills_path.is_dir():
            for skill_dir in sorted(plugin.skills_path.iterdir()):
                if not skill_dir.is_dir():
                    continue
                self.copy_directory(skill_dir, self.root / "skills" / skill_dir.name, context)
                self._reporter.debug(f"Installed skill: {skill_dir.name}", source=_SOURCE)

        for source, subdir in (
            (plugin.agents_path, "agents"),
            (plugin.commands_path, "commands"),
            (plugin.hooks_path, "hooks"),
        ):
            if source.is_dir():
                self.copy_directory(source, self.root / subdir, context)

        if plugin.hooks_path.is_dir():
            self._mark_hooks_executable()

        self._reporter.success(f"Installed plugin: {plugin.name} v{plugin.version}", source=_SOURCE)

    # =========================================================================
    # Artifacts
    # =========================================================================

    def _write_artifact(self, data: _typing.Any, path: _pathlib.Path, label: str) -> None:
        if self._dry_run:
            self._reporter.info(f"[DRY RUN] Would write {self._relative(path)}", source=_SOURCE)
            return
        try:
            write_json(data, path)
        except OSError as e:
            self._fail(path, e)
            return
        self._reporter.success(f"Created {label}", source=_SOURCE)

    def write_skill_rules(self, rule_set: _abc.Mapping[str, _typing.Any]) -> _pathlib.Path:
        path = self.root / constants.SKILL_RULES_PATH
        self._write_artifact(rule_set, path, "skill-rules.json")
        return path

    def write_settings(self, settings: _abc.Mapping[str, _typing.Any]) -> _pathlib.Path:
        path = self.root / constants.SETTINGS_PATH
        self._write_artifact(settings, path, "settings.json")
        return path

    def write_state(self, record: state.InstallationState) -> _pathlib.Path:
        path = state.state_path(self._project_root, self._state_file)
        self._write_artifact(record.to_json(), path, self._state_file)
        return path

    def update_gitignore(self) -> bool:
        """
        Append the ignore block to the project's .gitignore.

        Returns:
            True if the block was (or, in dry-run mode, would be) appended.
        """
        path = self._project_root / ".gitignore"
        try:
            content = path.read_text(encoding="utf-8") if path.exists() else ""
        except OSError as e:
            self._fail(path, e)
            return False

        if constants.GITIGNORE_SENTINEL in content:
            self._reporter.debug(".gitignore already has Claude Code entries", source=_SOURCE)
            return False

        if content and not content.endswith("\n"):
            content += "\n"
        if content:
            content += "\n"
        content += "\n".join(constants.GITIGNORE_ENTRIES) + "\n"

        if self._dry_run:
            self._reporter.info("[DRY RUN] Would update .gitignore", source=_SOURCE)
            return True
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            self._fail(path, e)
            return False
        self._reporter.success("Updated .gitignore", source=_SOURCE)
        return True

    # =========================================================================
    # Failures
    # =========================================================================

    def essential_failures(self) -> list[errors.FileSystemError]:
        """Recorded failures that touched a file on the essential list."""
        essential: list[errors.FileSystemError] = []
        for failure in self._failures:
            try:
                relative = failure.path.relative_to(self.root).as_posix()
            except ValueError:
                continue
            if relative in self._essential_files:
                essential.append(failure)
        return essential
