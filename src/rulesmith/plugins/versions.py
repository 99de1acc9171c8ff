"""
Semantic version and version-range checks.

Compatibility fields in plugin manifests use npm-style ranges
(``^1.2.0``, ``>=18 <21``, ``1.x || 2.x``, ``1.0.0 - 2.0.0``). Only
well-formedness is checked here; plugins are not matched against the
installed tool versions.
"""

from __future__ import annotations

import re as _re

_NR = r"(?:0|[1-9]\d*)"
_XR = rf"(?:[xX*]|{_NR})"
_IDENT = r"[0-9A-Za-z-]+"
_QUALIFIER = rf"(?:-{_IDENT}(?:\.{_IDENT})*)?(?:\+{_IDENT}(?:\.{_IDENT})*)?"

_VERSION_RE = _re.compile(rf"^v?{_NR}\.{_NR}\.{_NR}{_QUALIFIER}$")
_PARTIAL_RE = _re.compile(rf"^v?{_XR}(?:\.{_XR}(?:\.{_XR}{_QUALIFIER})?)?$")
_COMPARATOR_RE = _re.compile(r"^(~>|~|\^|<=|>=|<|>|=)?(.*)$")
_OPERATOR_SPACE_RE = _re.compile(r"(~>|~|\^|<=|>=|<|>|=)\s+")
_HYPHEN_RE = _re.compile(r"^(\S+)\s+-\s+(\S+)$")


def is_valid_version(version: str) -> bool:
    """Whether ``version`` is a full semantic version (``1.2.3-beta.1+build``)."""
    return bool(_VERSION_RE.match(version.strip()))


def _is_partial(text: str) -> bool:
    return bool(_PARTIAL_RE.match(text))


def _is_valid_simple(comparator: str) -> bool:
    match = _COMPARATOR_RE.match(comparator)
    if match is None:
        return False
    return _is_partial(match.group(2))


def is_valid_range(range_text: str) -> bool:
    """
    Whether ``range_text`` is a valid npm-style version range.

    An empty string and ``*`` match any version and are valid.
    """
    if not isinstance(range_text, str):
        return False

    for alternative in range_text.split("||"):
        alternative = _OPERATOR_SPACE_RE.sub(r"\1", alternative.strip())
        if not alternative:
            continue

        hyphen = _HYPHEN_RE.match(alternative)
        if hyphen:
            if not (_is_partial(hyphen.group(1)) and _is_partial(hyphen.group(2))):
                return False
            continue

        if not all(_is_valid_simple(part) for part in alternative.split()):
            return False

    return True
