"""
Installation of the composed tree into a project.

- planning: enumerate file copies without touching the destination
- installer: scaffold, copy, chmod, write artifacts, update .gitignore
- state: the installation state record
- verifier: read-only audit of an installed tree
"""

from rulesmith.install.installer import Installer, write_json
from rulesmith.install.planning import Action, FileAction, plan_copy
from rulesmith.install.state import InstallationState, load_state
from rulesmith.install.verifier import VerificationReport, Verifier

__all__ = [
    "Action",
    "FileAction",
    "InstallationState",
    "Installer",
    "VerificationReport",
    "Verifier",
    "load_state",
    "plan_copy",
    "write_json",
]
