"""
Skill rule fragments.

Each plugin may ship a skill-rules.fragment.json describing when its
skills activate and how strongly they are enforced:

```json
{
  "skills": {
    "frontend-dev-guidelines": {
      "type": "domain",
      "enforcement": "suggest",
      "priority": "high",
      "promptTriggers": {"keywords": ["component"], "intentPatterns": ["create.*page"]},
      "fileTriggers": {"pathPatterns": ["{{FRONTEND_DIR}}/**/*.tsx"]}
    }
  }
}
```

Fragments from all installed plugins are merged into skill-rules.json by
rulesmith.compose.fragments.
"""

from __future__ import annotations

import enum as _enum
import logging as _logging
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic

import rulesmith.errors as errors
import rulesmith.plugins.validation as validation

_logger = _logging.getLogger(__name__)

SkillName = _typing.Annotated[str, _pydantic.Field(pattern=r"^[a-z0-9-]+$")]

PROMPT_TRIGGER_FIELDS: tuple[str, ...] = ("keywords", "intentPatterns")
FILE_TRIGGER_FIELDS: tuple[str, ...] = ("pathPatterns", "pathExclusions", "contentPatterns")

# Trigger fields holding regular expressions, as (section, field)
REGEX_FIELDS: tuple[tuple[str, str], ...] = (
    ("promptTriggers", "intentPatterns"),
    ("fileTriggers", "contentPatterns"),
)


class SkillType(str, _enum.Enum):
    DOMAIN = "domain"
    GUARDRAIL = "guardrail"


class Enforcement(str, _enum.Enum):
    SUGGEST = "suggest"
    WARN = "warn"
    BLOCK = "block"


class Priority(str, _enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PromptTriggers(_pydantic.BaseModel):
    """Activation based on what the user asks."""

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    keywords: validation.UniqueStrings | None = None
    intent_patterns: validation.UniqueStrings | None = _pydantic.Field(
        default=None, alias="intentPatterns"
    )


class FileTriggers(_pydantic.BaseModel):
    """Activation based on which files are touched."""

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    path_patterns: validation.UniqueStrings | None = _pydantic.Field(
        default=None, alias="pathPatterns"
    )
    path_exclusions: validation.UniqueStrings | None = _pydantic.Field(
        default=None, alias="pathExclusions"
    )
    content_patterns: validation.UniqueStrings | None = _pydantic.Field(
        default=None, alias="contentPatterns"
    )


class SkillRule(_pydantic.BaseModel):
    """Activation policy and severity of one skill."""

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    type: SkillType
    enforcement: Enforcement
    priority: Priority
    prompt_triggers: PromptTriggers | None = _pydantic.Field(
        default=None, alias="promptTriggers"
    )
    file_triggers: FileTriggers | None = _pydantic.Field(default=None, alias="fileTriggers")


class SkillRulesFragment(_pydantic.BaseModel):
    """One plugin's contribution to skill-rules.json."""

    model_config = _pydantic.ConfigDict(extra="allow")

    skills: dict[SkillName, SkillRule]

    def to_json(self) -> dict[str, _typing.Any]:
        """Plain JSON tree, camelCase keys, unset fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


FragmentCheck: _typing.TypeAlias = validation.CheckResult[SkillRulesFragment]


def _check_patterns(data: _typing.Any) -> list[str]:
    """Compile every regex trigger; works on raw data so it runs even after schema errors."""
    problems: list[str] = []
    skills = data.get("skills") if isinstance(data, dict) else None
    if not isinstance(skills, dict):
        return problems

    for skill_name, rule in skills.items():
        if not isinstance(rule, dict):
            continue
        for section, field in REGEX_FIELDS:
            triggers = rule.get(section)
            patterns = triggers.get(field) if isinstance(triggers, dict) else None
            if not isinstance(patterns, list):
                continue
            for pattern in patterns:
                if not isinstance(pattern, str):
                    continue
                try:
                    _re.compile(pattern)
                except _re.error:
                    problems.append(
                        f"Invalid regex pattern in {skill_name}.{section}.{field}: {pattern}"
                    )
    return problems


def validate_fragment_data(data: _typing.Any) -> FragmentCheck:
    """
    Validate a parsed fragment document.

    Collects schema violations and uncompilable patterns together.
    """
    result = validation.validate_model(SkillRulesFragment, data)
    result.errors.extend(_check_patterns(data))
    return result


def load_fragment(path: _pathlib.Path) -> SkillRulesFragment:
    """
    Load and validate a skill-rules fragment.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        FragmentValidationError: If the file is invalid, listing every violation.
    """
    data = validation.read_json(path, errors.FragmentValidationError)
    result = validate_fragment_data(data)
    if not result.valid:
        raise errors.FragmentValidationError(result.errors, source=str(path))
    assert result.document is not None
    _logger.debug("Loaded fragment %s (%d skills)", path, len(result.document.skills))
    return result.document
