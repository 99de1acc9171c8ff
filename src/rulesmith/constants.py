"""
Shared constants for Rulesmith.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Destination tree defaults
DEFAULT_CLAUDE_DIR = ".claude"
"""Directory created in the project root to hold the composed tree."""

DEFAULT_STATE_FILE = ".claude-code-cli.json"
"""Installation state record, written to the project root."""

SCAFFOLD_SUBDIRS: tuple[str, ...] = ("skills", "hooks", "agents", "commands")
"""Subdirectories created inside the destination tree."""

# Artifact locations relative to the destination tree
SKILL_RULES_PATH = "skills/skill-rules.json"
SETTINGS_PATH = "settings.json"

# Plugin layout
MANIFEST_FILE = "plugin.json"
DEFAULT_FRAGMENT_FILE = "skill-rules.fragment.json"

DEFAULT_ESSENTIAL_FILES: tuple[str, ...] = (
    "settings.json",
    "skills/skill-rules.json",
    "hooks/skill-activation-prompt.sh",
    "hooks/skill-activation-prompt.ts",
    "hooks/post-tool-use-tracker.sh",
)
"""Files that must exist after installation for the tree to be usable."""

HOOK_SCRIPT_GLOB = "*.sh"
"""Hook scripts matching this glob are marked executable."""

HOOK_DEPENDENCY_DIR = "node_modules"
"""Marker directory proving hook dependencies were installed."""

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {".md", ".ts", ".js", ".json", ".sh", ".bash", ".txt", ".yml", ".yaml"}
)
"""Extensions that receive template substitution when copied."""

EXECUTABLE_MODE = 0o755

# .gitignore handling
GITIGNORE_SENTINEL = "# Claude Code"
GITIGNORE_ENTRIES: tuple[str, ...] = (
    GITIGNORE_SENTINEL,
    ".claude/settings.local.json",
    ".claude/hooks/node_modules/",
    ".claude-code-cli.json",
)

# Skill rule ordering (lower sorts first)
PRIORITY_ORDER: dict[str, int] = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
}
UNKNOWN_PRIORITY_RANK = 999
