"""
Post-installation audit.

The verifier only reads the filesystem. Missing pieces that make the
installed tree unusable are errors; problems that degrade it are warnings.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing

import rulesmith.constants as constants


@_dataclasses.dataclass
class VerificationReport:
    """Outcome of verifying an installed tree."""

    errors: list[str] = _dataclasses.field(default_factory=list)
    warnings: list[str] = _dataclasses.field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


class Verifier:
    """Checks that an installed tree is complete and usable."""

    def __init__(
        self,
        project_root: _pathlib.Path,
        claude_dir: str = constants.DEFAULT_CLAUDE_DIR,
        essential_files: _abc.Sequence[str] = constants.DEFAULT_ESSENTIAL_FILES,
    ) -> None:
        self._project_root = project_root
        self._claude_dir = claude_dir
        self._essential_files = tuple(essential_files)

    @property
    def root(self) -> _pathlib.Path:
        return self._project_root / self._claude_dir

    def verify(self) -> VerificationReport:
        report = VerificationReport()
        root = self.root

        if not root.is_dir():
            report.errors.append(f"{self._claude_dir} directory not found")
            return report

        for name in self._essential_files:
            if not (root / name).exists():
                report.errors.append(f"Missing essential file: {name}")

        hooks_dir = root / "hooks"
        for script in sorted(hooks_dir.glob(constants.HOOK_SCRIPT_GLOB)):
            if script.is_file() and not script.stat().st_mode & 0o111:
                report.warnings.append(f"Hook script not executable: {script.name}")

        if not (hooks_dir / constants.HOOK_DEPENDENCY_DIR).exists():
            report.warnings.append(
                f"Hook dependencies not installed (run npm install in {self._claude_dir}/hooks)"
            )

        return report
