"""
Main CLI entry point for Rulesmith.

Provides the command-line interface using Click:

    rulesmith init -p backend -p frontend --path BACKEND_DIR=api
    rulesmith plugin list
    rulesmith plugin validate plugins/backend
    rulesmith verify
"""

import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.logging as _rich_logging

import rulesmith
import rulesmith.cli.render as render
import rulesmith.config as config
import rulesmith.engine as engine
import rulesmith.errors as errors
import rulesmith.install.verifier as verifier
import rulesmith.plugins.discovery as discovery
import rulesmith.plugins.loader as loader
import rulesmith.plugins.manifest as manifest
import rulesmith.plugins.resolver as resolver
import rulesmith.plugins.validation as validation
import rulesmith.reporting as reporting

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

EVENT_LOGGER = "rulesmith.events"
"""Logger the CLI reporter mirrors to; its events are rendered with rich instead."""


def _configure_logging(settings: config.Settings) -> None:
    level = _logging.DEBUG if settings.verbose else getattr(_logging, settings.log_level)
    handler = _rich_logging.RichHandler(
        console=render.make_console(stderr=True),
        show_time=False,
        show_path=False,
    )
    root = _logging.getLogger("rulesmith")
    root.handlers[:] = [handler]
    root.setLevel(level)
    events = _logging.getLogger(EVENT_LOGGER)
    events.handlers[:] = [_logging.NullHandler()]
    events.propagate = False


def _fail(message: str, *, json_output: bool = False) -> _typing.NoReturn:
    if json_output:
        _click.echo(_json.dumps({"error": message}, indent=2))
    else:
        _click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


def _parse_paths(
    ctx: _click.Context,  # noqa: ARG001 - required by click callback interface
    param: _click.Parameter,  # noqa: ARG001
    value: tuple[str, ...],
) -> dict[str, str]:
    """Turn repeated KEY=VALUE options into a dict."""
    paths: dict[str, str] = {}
    for item in value:
        key, sep, path = item.partition("=")
        if not sep or not key.strip():
            raise _click.BadParameter(f"expected KEY=VALUE, got {item!r}")
        paths[key.strip()] = path.strip()
    return paths


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(rulesmith.__version__, "-v", "--version", prog_name="rulesmith")
@_click.option("--verbose", is_flag=True, help="Show debug events and logs")
@_click.option(
    "--plugins-dir",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Directory holding the available plugins",
)
@_click.option(
    "--core-dir",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Directory holding the core hooks and skills",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    verbose: bool,
    plugins_dir: _pathlib.Path | None,
    core_dir: _pathlib.Path | None,
) -> None:
    """
    Rulesmith - compose a project's .claude tree from plugins.

    \b
    Examples:
        rulesmith plugin list                    # Available plugins
        rulesmith init -p backend                # Install a plugin and its dependencies
        rulesmith init -p backend --dry-run      # Show what would be written
        rulesmith verify                         # Check an installed tree
    """
    try:
        settings = config.Settings()
    except errors.RulesmithError as e:
        _fail(str(e))
    except _pydantic.ValidationError as e:
        _fail(f"Invalid configuration:\n{e}")

    overrides: dict[str, _typing.Any] = {}
    if verbose:
        overrides["verbose"] = True
    if plugins_dir is not None:
        overrides["plugins_dir"] = plugins_dir
    if core_dir is not None:
        overrides["core_dir"] = core_dir
    if overrides:
        settings = settings.model_copy(update=overrides)

    _configure_logging(settings)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


def _settings_for(ctx: _click.Context, project: _pathlib.Path | None) -> config.Settings:
    settings: config.Settings = ctx.obj["settings"]
    if project is not None:
        settings = settings.model_copy(update={"project_root": project})
    return settings


# =============================================================================
# init
# =============================================================================


@cli.command()
@_click.option("-p", "--plugin", "plugin_names", multiple=True, help="Plugin to install (repeatable)")
@_click.option("-f", "--force", is_flag=True, help="Overwrite an existing installation")
@_click.option("--dry-run", is_flag=True, help="Report what would be written without writing")
@_click.option(
    "--path",
    "custom_paths",
    multiple=True,
    callback=_parse_paths,
    metavar="KEY=VALUE",
    help="Template path override, e.g. BACKEND_DIR=api (repeatable)",
)
@_click.option(
    "--project",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Project root (default: detected from the current directory)",
)
@_click.option("--no-deps", is_flag=True, help="Skip installing hook dependencies")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def init(
    ctx: _click.Context,
    plugin_names: tuple[str, ...],
    force: bool,
    dry_run: bool,
    custom_paths: dict[str, str],
    project: _pathlib.Path | None,
    no_deps: bool,
    json_output: bool,
) -> None:
    """Install plugins (and their dependencies) into a project."""
    settings = _settings_for(ctx, project)
    reporter = reporting.Reporter(_logging.getLogger(EVENT_LOGGER))
    composer = engine.Composer(settings, reporter)
    request = engine.ComposeRequest(
        plugins=list(plugin_names),
        force=force,
        dry_run=dry_run,
        custom_paths=custom_paths,
        install_dependencies=not no_deps,
    )

    try:
        result = composer.run(request)
    except errors.RulesmithError as e:
        if not json_output:
            render.render_events(render.make_console(), reporter.events, verbose=settings.verbose)
        _fail(str(e), json_output=json_output)

    if json_output:
        data = result.to_dict()
        data["events"] = [e.to_dict() for e in reporter.events]
        _click.echo(_json.dumps(data, indent=2))
    else:
        console = render.make_console()
        render.render_events(console, reporter.events, verbose=settings.verbose)
        render.render_result(console, result)

    if not result.success:
        raise SystemExit(1)


# =============================================================================
# plugin
# =============================================================================


@cli.group(name="plugin")
def plugin_group() -> None:
    """Plugin inspection and validation commands."""
    pass


def _discovery(ctx: _click.Context) -> discovery.PluginDiscovery:
    settings: config.Settings = ctx.obj["settings"]
    return discovery.PluginDiscovery(settings.get_plugins_dir())


@plugin_group.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_list(ctx: _click.Context, json_output: bool) -> None:
    """List all discovered plugins."""
    finder = _discovery(ctx)

    plugins: list[manifest.Plugin] = []
    invalid: list[tuple[_pathlib.Path, Exception]] = []
    for item in finder.discover_all(include_errors=True):
        if isinstance(item, manifest.Plugin):
            plugins.append(item)
        else:
            invalid.append(item)

    if json_output:
        data = {
            "plugins_dir": str(finder.plugins_dir),
            "plugins": [p.to_dict() for p in plugins],
            "invalid": [{"path": str(path), "error": str(e)} for path, e in invalid],
        }
        _click.echo(_json.dumps(data, indent=2))
        return

    console = render.make_console()
    console.print(f"Plugins directory: {finder.plugins_dir}", markup=False)
    if not plugins and not invalid:
        console.print("No plugins found.")
        return
    if plugins:
        render.render_plugins(console, plugins)
    for path, e in invalid:
        console.print(f"Invalid plugin at {path}:\n{e}", style="yellow", markup=False)


@plugin_group.command(name="show")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_show(ctx: _click.Context, name: str, json_output: bool) -> None:
    """Show details for a specific plugin."""
    plugin = _discovery(ctx).discover().get(name)

    if plugin is None:
        _fail(f"Plugin not found: {name}", json_output=json_output)

    if json_output:
        _click.echo(_json.dumps(plugin.manifest.to_json() | {"path": str(plugin.path)}, indent=2))
    else:
        render.render_plugin(render.make_console(), plugin)


@plugin_group.command(name="validate")
@_click.argument(
    "path",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=".",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
def plugin_validate(path: _pathlib.Path, json_output: bool) -> None:
    """Validate a plugin directory (default: current directory)."""
    problems: list[str] = []
    warnings: list[str] = []

    try:
        data = validation.read_json(manifest.manifest_path(path), errors.ManifestValidationError)
    except FileNotFoundError as e:
        _fail(str(e), json_output=json_output)
    except errors.ManifestValidationError as e:
        data = None
        problems.extend(e.errors)

    if data is not None:
        check = manifest.validate_manifest_data(data)
        problems.extend(check.errors)
        warnings.extend(check.warnings)
        if check.valid:
            problems.extend(loader.PluginLoader().validate(path))

    if json_output:
        data_out = {"path": str(path), "valid": not problems, "errors": problems, "warnings": warnings}
        _click.echo(_json.dumps(data_out, indent=2))
    else:
        console = render.make_console()
        for problem in problems:
            console.print(f"  ✗ {problem}", style="red", markup=False)
        for warning in warnings:
            console.print(f"  ⚠ {warning}", style="yellow", markup=False)
        if problems:
            console.print(f"Plugin at {path} is invalid", markup=False)
        else:
            console.print(f"✓ Plugin at {path} is valid", style="green", markup=False)

    if problems:
        raise SystemExit(1)


@plugin_group.command(name="order")
@_click.argument("names", nargs=-1, required=True)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_order(ctx: _click.Context, names: tuple[str, ...], json_output: bool) -> None:
    """Show the install order for a plugin selection."""
    found = _discovery(ctx).scan()
    try:
        order = resolver.resolve_plugins(list(names), found.plugins, invalid=found.invalid)
    except errors.RulesmithError as e:
        _fail(str(e), json_output=json_output)

    if json_output:
        _click.echo(_json.dumps({"order": [p.name for p in order]}, indent=2))
    else:
        for index, plugin in enumerate(order, 1):
            _click.echo(f"{index}. {plugin.name} ({plugin.version})")


# =============================================================================
# verify
# =============================================================================


@cli.command()
@_click.option(
    "--project",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Project root (default: detected from the current directory)",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def verify(ctx: _click.Context, project: _pathlib.Path | None, json_output: bool) -> None:
    """Check that a project's installed tree is complete."""
    settings = _settings_for(ctx, project)
    try:
        project_root = settings.get_project_root()
    except errors.RulesmithError as e:
        _fail(str(e), json_output=json_output)

    report = verifier.Verifier(project_root, settings.claude_dir, settings.essential_files).verify()

    if json_output:
        _click.echo(_json.dumps(report.to_dict(), indent=2))
    else:
        render.render_verification(render.make_console(), report)

    if not report.valid:
        raise SystemExit(1)


# =============================================================================
# config
# =============================================================================


@cli.command(name="config")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def config_cmd(ctx: _click.Context, json_output: bool) -> None:
    """Show the effective configuration."""
    settings: config.Settings = ctx.obj["settings"]
    data = settings.to_dict()
    extra = settings.get_extra_fields()

    if json_output:
        _click.echo(_json.dumps(data | {"unknown_keys": sorted(extra)}, indent=2))
        return

    for key, value in data.items():
        _click.echo(f"{key}: {value}")
    for key in sorted(extra):
        _click.echo(f"Warning: unknown config key: {key}", err=True)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="rulesmith")


if __name__ == "__main__":
    main()
