"""
CLI module for Rulesmith.

Provides the command-line interface using Click.
"""

from rulesmith.cli.main import cli, main

__all__ = ["main", "cli"]
