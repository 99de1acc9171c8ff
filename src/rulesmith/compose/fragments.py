"""
Skill rule fragment merging.

Folds the fragments of all installed plugins, in install order, into the
single skill-rules.json rule set:

- A skill seen for the first time is inserted as-is.
- For a skill already present, ``type``, ``enforcement`` and ``priority``
  take the incoming value when it is set (last writer wins).
- The five trigger lists are unioned, keeping first occurrences.

The result is sorted by priority (critical first, unknown last) with ties
kept in insertion order, then checked for likely mistakes.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import rulesmith.compose.templates as templates
import rulesmith.compose.values as values
import rulesmith.constants as constants
import rulesmith.plugins.rules as rules
import rulesmith.reporting as reporting

_logger = _logging.getLogger(__name__)

SkillRuleDict: _typing.TypeAlias = dict[str, _typing.Any]
RuleSet: _typing.TypeAlias = dict[str, _typing.Any]
"""A fragment-shaped JSON tree: ``{"skills": {name: rule}}``."""

TRIGGER_SECTIONS: dict[str, tuple[str, ...]] = {
    "promptTriggers": rules.PROMPT_TRIGGER_FIELDS,
    "fileTriggers": rules.FILE_TRIGGER_FIELDS,
}


def _union(
    existing: list[_typing.Any] | None,
    incoming: list[_typing.Any] | None,
) -> list[_typing.Any] | None:
    if existing is None and incoming is None:
        return None
    return values.unique([*(existing or []), *(incoming or [])])


def merge_skill_rules(existing: SkillRuleDict, incoming: SkillRuleDict) -> SkillRuleDict:
    """
    Merge two definitions of the same skill.

    Scalars and any other keys take the incoming value when present;
    trigger lists are unioned.
    """
    merged: SkillRuleDict = values.copy_value(existing)

    for key, value in incoming.items():
        if key not in TRIGGER_SECTIONS and value is not None:
            merged[key] = values.copy_value(value)

    for section, fields in TRIGGER_SECTIONS.items():
        old = existing.get(section)
        new = incoming.get(section)
        if old is None and new is None:
            continue
        old = old or {}
        new = new or {}
        combined: dict[str, _typing.Any] = {
            k: values.copy_value(v) for k, v in {**old, **new}.items() if k not in fields
        }
        for field in fields:
            union = _union(old.get(field), new.get(field))
            if union is not None:
                combined[field] = union
        merged[section] = combined

    return merged


def deduplicate_skill_rules(rule_set: RuleSet) -> RuleSet:
    """Drop repeated trigger entries from every skill; idempotent."""
    deduplicated: dict[str, SkillRuleDict] = {}
    for name, rule in rule_set.get("skills", {}).items():
        copy = values.copy_value(rule)
        for section, fields in TRIGGER_SECTIONS.items():
            triggers = copy.get(section)
            if not isinstance(triggers, dict):
                continue
            for field in fields:
                if isinstance(triggers.get(field), list):
                    triggers[field] = values.unique(triggers[field])
        deduplicated[name] = copy
    return {**rule_set, "skills": deduplicated}


def priority_rank(priority: _typing.Any) -> int:
    """Sort key for a priority value; unknown priorities sort last."""
    return constants.PRIORITY_ORDER.get(priority, constants.UNKNOWN_PRIORITY_RANK)


def sort_skills_by_priority(rule_set: RuleSet) -> RuleSet:
    """Order skills critical → high → medium → low; stable for ties."""
    entries = sorted(
        rule_set.get("skills", {}).items(),
        key=lambda item: priority_rank(item[1].get("priority")),
    )
    return {**rule_set, "skills": dict(entries)}


# Exclusions narrow other triggers and never activate a skill on their own
ACTIVATING_FIELDS: dict[str, tuple[str, ...]] = {
    "promptTriggers": ("keywords", "intentPatterns"),
    "fileTriggers": ("pathPatterns", "contentPatterns"),
}


def has_triggers(rule: SkillRuleDict) -> bool:
    """Whether the skill has any trigger that can activate it."""
    for section, fields in ACTIVATING_FIELDS.items():
        triggers = rule.get(section)
        if not isinstance(triggers, dict):
            continue
        if any(triggers.get(field) for field in fields):
            return True
    return False


def validate_merged_skill_rules(rule_set: RuleSet) -> list[str]:
    """
    Look for likely mistakes in a merged rule set.

    Returns:
        Warning messages. None of them make the rule set unusable.
    """
    warnings: list[str] = []
    skills: dict[str, SkillRuleDict] = rule_set.get("skills", {})

    blocking_guardrails = [
        name
        for name, rule in skills.items()
        if rule.get("enforcement") == "block" and rule.get("type") == "guardrail"
    ]
    if len(blocking_guardrails) > 1:
        warnings.append(
            f"Multiple blocking guardrails found: {', '.join(blocking_guardrails)}. "
            "This may cause conflicts."
        )

    for name, rule in skills.items():
        if not has_triggers(rule):
            warnings.append(f'Skill "{name}" has no trigger patterns. It will never activate.')

    return warnings


@_dataclasses.dataclass
class MergeResult:
    """Merged rule set plus the warnings found while checking it."""

    rules: RuleSet
    warnings: list[str] = _dataclasses.field(default_factory=list)

    @property
    def skill_names(self) -> list[str]:
        return list(self.rules.get("skills", {}))


FragmentInput: _typing.TypeAlias = rules.SkillRulesFragment | _abc.Mapping[str, _typing.Any]


class FragmentMerger:
    """Merges skill rule fragments from several plugins into one rule set."""

    def __init__(self, reporter: reporting.Reporter | None = None) -> None:
        self._reporter = reporter

    def _report(self, level: reporting.Level, message: str) -> None:
        if self._reporter is not None:
            self._reporter.emit(level, message, source="merger")
        else:
            _logger.log(
                _logging.WARNING if level is reporting.Level.WARNING else _logging.DEBUG,
                message,
            )

    def merge(
        self,
        fragments: _abc.Iterable[FragmentInput],
        context: _abc.Mapping[str, _typing.Any] | None = None,
    ) -> MergeResult:
        """
        Merge fragments in order.

        Args:
            fragments: Fragments in install order (models or plain JSON trees).
            context: Template variables substituted into each fragment first.

        Returns:
            MergeResult with the sorted rule set and any warnings.
        """
        skills: dict[str, SkillRuleDict] = {}

        for fragment in fragments:
            data = fragment.to_json() if isinstance(fragment, rules.SkillRulesFragment) else fragment
            if context is not None:
                data = templates.replace_deep(data, context)

            for name, rule in data.get("skills", {}).items():
                if name in skills:
                    skills[name] = merge_skill_rules(skills[name], rule)
                    self._report(reporting.Level.DEBUG, f"Merged skill rule: {name}")
                else:
                    skills[name] = values.copy_value(rule)

        merged = sort_skills_by_priority(deduplicate_skill_rules({"skills": skills}))
        warnings = validate_merged_skill_rules(merged)
        for warning in warnings:
            self._report(reporting.Level.WARNING, warning)

        return MergeResult(rules=merged, warnings=warnings)
