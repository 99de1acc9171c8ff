"""
Tests that enforce coding standards.

Source and test files are parsed with ast, so strings and docstrings that
merely look like imports are never flagged. Conventions checked:

- No ``from X import Y`` outside ``__init__.py`` (``__future__`` excepted)
- External modules are aliased with a leading underscore: ``import yaml as _yaml``
- Internal modules are aliased without one: ``import rulesmith.errors as errors``
- No bare ``except:`` and no ``print()`` in library code
"""

import ast as _ast
import collections.abc as _abc
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

SRC_DIR = _pathlib.Path(__file__).parent.parent / "src" / "rulesmith"
TESTS_DIR = _pathlib.Path(__file__).parent

PACKAGE = "rulesmith"


def _python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    return sorted(directory.rglob("*.py"))


def _parse(source: str) -> _ast.Module:
    return _ast.parse(source)


def _is_type_checking_block(node: _ast.AST) -> bool:
    if not isinstance(node, _ast.If):
        return False
    test = node.test
    if isinstance(test, _ast.Name):
        return test.id == "TYPE_CHECKING"
    return isinstance(test, _ast.Attribute) and test.attr == "TYPE_CHECKING"


def _runtime_nodes(tree: _ast.Module) -> list[_ast.AST]:
    """All nodes except those under ``if TYPE_CHECKING:``."""
    skipped: set[int] = set()
    for node in _ast.walk(tree):
        if _is_type_checking_block(node):
            for child in _ast.walk(node):
                skipped.add(id(child))
    return [node for node in _ast.walk(tree) if id(node) not in skipped]


def find_from_imports(source: str) -> list[tuple[int, str]]:
    """(line, module) for every runtime ``from X import Y`` except __future__."""
    found: list[tuple[int, str]] = []
    for node in _runtime_nodes(_parse(source)):
        if isinstance(node, _ast.ImportFrom) and node.module != "__future__":
            found.append((node.lineno, node.module or "."))
    return sorted(found)


def find_alias_violations(source: str) -> list[tuple[int, str]]:
    """Imports whose alias doesn't follow the internal/external convention."""
    found: list[tuple[int, str]] = []
    for node in _runtime_nodes(_parse(source)):
        if not isinstance(node, _ast.Import):
            continue
        for alias in node.names:
            internal = alias.name == PACKAGE or alias.name.startswith(PACKAGE + ".")
            if alias.asname is None:
                # A bare top-level import of the package itself is fine
                if not (internal and alias.name == PACKAGE):
                    found.append((node.lineno, alias.name))
            elif internal == alias.asname.startswith("_"):
                found.append((node.lineno, f"{alias.name} as {alias.asname}"))
    return sorted(found)


def find_bare_excepts(source: str) -> list[int]:
    return sorted(
        node.lineno
        for node in _ast.walk(_parse(source))
        if isinstance(node, _ast.ExceptHandler) and node.type is None
    )


def find_print_calls(source: str) -> list[int]:
    return sorted(
        node.lineno
        for node in _ast.walk(_parse(source))
        if isinstance(node, _ast.Call)
        and isinstance(node.func, _ast.Name)
        and node.func.id == "print"
    )


def _collect(
    directory: _pathlib.Path,
    check: _abc.Callable[[str], list[_typing.Any]],
    *,
    skip_init: bool = False,
) -> list[str]:
    violations: list[str] = []
    for path in _python_files(directory):
        if skip_init and path.name == "__init__.py":
            continue
        for item in check(path.read_text(encoding="utf-8")):
            violations.append(f"{path.relative_to(directory.parent)}: {item}")
    return violations


class TestImportStyle:
    def test_src_no_from_imports(self) -> None:
        violations = _collect(SRC_DIR, find_from_imports, skip_init=True)

        if violations:
            _pytest.fail(
                "Found forbidden 'from X import Y' imports:\n"
                + "\n".join(f"  {v}" for v in violations)
                + "\n\nUse 'import X as _x' (external) or 'import X as x' (internal) instead."
            )

    def test_tests_no_from_imports(self) -> None:
        violations = _collect(TESTS_DIR, find_from_imports)

        assert violations == []

    def test_src_import_aliases(self) -> None:
        violations = _collect(SRC_DIR, find_alias_violations)

        assert violations == [], "\n".join(violations)

    def test_tests_import_aliases(self) -> None:
        violations = _collect(TESTS_DIR, find_alias_violations)

        assert violations == [], "\n".join(violations)


class TestErrorHandlingStyle:
    def test_no_bare_except_in_src(self) -> None:
        assert _collect(SRC_DIR, find_bare_excepts) == []

    def test_no_print_in_src(self) -> None:
        """Output goes through click, rich or logging."""
        assert _collect(SRC_DIR, find_print_calls) == []


class TestCheckers:
    """The checkers themselves."""

    def test_detects_from_import(self) -> None:
        assert find_from_imports("from pathlib import Path") == [(1, "pathlib")]

    def test_allows_future_imports(self) -> None:
        assert find_from_imports("from __future__ import annotations") == []

    def test_ignores_docstrings(self) -> None:
        source = '"""\nfrom the plugins directory import every manifest\n"""\n'

        assert find_from_imports(source) == []

    def test_ignores_type_checking_block(self) -> None:
        source = (
            "import typing as _typing\n"
            "\n"
            "if _typing.TYPE_CHECKING:\n"
            "    from some_module import SomeType\n"
            "\n"
            "from forbidden import Other\n"
        )

        assert find_from_imports(source) == [(6, "forbidden")]

    def test_alias_rules(self) -> None:
        source = (
            "import json as _json\n"
            "import rulesmith\n"
            "import rulesmith.errors as errors\n"
            "import yaml\n"
            "import pydantic as pydantic\n"
            "import rulesmith.constants as _constants\n"
        )

        assert find_alias_violations(source) == [
            (4, "yaml"),
            (5, "pydantic as pydantic"),
            (6, "rulesmith.constants as _constants"),
        ]

    def test_bare_except_and_print(self) -> None:
        source = "try:\n    print('x')\nexcept:\n    pass\n"

        assert find_bare_excepts(source) == [3]
        assert find_print_calls(source) == [2]
