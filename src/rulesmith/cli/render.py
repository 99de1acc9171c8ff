"""
Rich rendering for CLI output.

Commands collect events in a Reporter and hand the finished results to
these functions; nothing here affects what gets installed.
"""

import collections.abc as _abc

import rich.console as _rich_console
import rich.markup as _rich_markup
import rich.table as _rich_table

import rulesmith.engine as engine
import rulesmith.install.verifier as verifier
import rulesmith.plugins.manifest as manifest
import rulesmith.reporting as reporting

_LEVEL_STYLES: dict[reporting.Level, tuple[str, str]] = {
    reporting.Level.DEBUG: ("·", "dim"),
    reporting.Level.INFO: ("ℹ", "blue"),
    reporting.Level.SUCCESS: ("✓", "green"),
    reporting.Level.WARNING: ("⚠", "yellow"),
    reporting.Level.ERROR: ("✗", "red"),
}


def make_console(*, stderr: bool = False) -> _rich_console.Console:
    return _rich_console.Console(stderr=stderr, highlight=False)


def render_events(
    console: _rich_console.Console,
    events: _abc.Iterable[reporting.Event],
    *,
    verbose: bool = False,
) -> None:
    """Print reported events, hiding debug events unless verbose."""
    for event in events:
        if event.level is reporting.Level.DEBUG and not verbose:
            continue
        icon, style = _LEVEL_STYLES[event.level]
        console.print(f"[{style}]{icon}[/] {_rich_markup.escape(event.message)}", soft_wrap=True)


def render_plugins(
    console: _rich_console.Console,
    plugins: _abc.Iterable[manifest.Plugin],
) -> None:
    table = _rich_table.Table(title="Available Plugins")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Description")
    table.add_column("Depends on")
    for plugin in plugins:
        table.add_row(
            plugin.name,
            plugin.version,
            _rich_markup.escape(plugin.manifest.description),
            ", ".join(plugin.dependencies) or "-",
        )
    console.print(table)


def render_plugin(console: _rich_console.Console, plugin: manifest.Plugin) -> None:
    info = plugin.manifest
    provides = info.provides
    console.print(f"[bold]{_rich_markup.escape(info.display_name)}[/] ({plugin.name} v{plugin.version})")
    console.print(f"  {info.description}", markup=False)
    console.print(f"  Author: {info.author}", markup=False)
    console.print(f"  Path: {plugin.path}", markup=False)
    console.print(f"  Compatibility: claudeCode {info.compatibility.claude_code}, node {info.compatibility.node}", markup=False)
    console.print()
    console.print("Components:")
    console.print(f"  Skills: {', '.join(provides.skills) or '(none)'}", markup=False)
    console.print(f"  Agents: {', '.join(provides.agents) or '(none)'}", markup=False)
    console.print(f"  Commands: {', '.join(provides.commands) or '(none)'}", markup=False)
    console.print(f"  Hooks: {', '.join(provides.hooks) or '(none)'}", markup=False)
    console.print(f"  Dependencies: {', '.join(plugin.dependencies) or '(none)'}", markup=False)
    if info.templates.paths:
        console.print()
        console.print("Template paths:")
        for name, default in info.templates.paths.items():
            console.print(f"  {name} = {default}", markup=False)


def render_verification(
    console: _rich_console.Console,
    report: verifier.VerificationReport,
) -> None:
    if report.valid:
        console.print("[green]✓[/] Installation verified")
    else:
        console.print("[red]✗[/] Installation has errors:")
    for error in report.errors:
        console.print(f"  [red]✗[/] {_rich_markup.escape(error)}")
    for warning in report.warnings:
        console.print(f"  [yellow]⚠[/] {_rich_markup.escape(warning)}")


def render_result(console: _rich_console.Console, result: engine.ComposeResult) -> None:
    order = result.install_order
    console.print()
    console.print(f"Install order: {', '.join(order) if order else '(core only)'}")
    skills = list(result.composition.rules.get("skills", {}))
    console.print(f"Skills: {', '.join(skills) if skills else '(none)'}")
    if result.composition.missing_variables:
        console.print(
            "[yellow]⚠[/] Unresolved template variables: "
            + ", ".join(result.composition.missing_variables)
        )
    if result.dry_run:
        console.print("[blue]ℹ[/] Dry run: no files were written")
    if result.verification is not None:
        render_verification(console, result.verification)
