"""
Composition primitives.

- values: classification of JSON-like values
- deep_merge: generic merge for settings and hooks
- templates: {{VARIABLE}} substitution
- fragments: typed merge of skill rule fragments
"""

from rulesmith.compose.deep_merge import merge_hooks, merge_settings
from rulesmith.compose.fragments import FragmentMerger, MergeResult
from rulesmith.compose.templates import TemplateCheck, TemplateContext, default_context
from rulesmith.compose.values import ValueKind, kind_of

__all__ = [
    "FragmentMerger",
    "MergeResult",
    "TemplateCheck",
    "TemplateContext",
    "ValueKind",
    "default_context",
    "kind_of",
    "merge_hooks",
    "merge_settings",
]
