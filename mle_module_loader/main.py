"""mle-module-loader - Load npm packages into Oracle MLE as a closed module set."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from .builder import build_package
from .console import console
from .entry_points import EntryPointOverride
from .enumerator import DependencyEnumerator
from .errors import MleLoaderError
from .identifiers import build_dependency_set
from .logging_setup import init_console_logging
from .settings import AppSettings
from .settings import LoaderSettings
from .utils.error_format import escape_markup
from .utils.error_format import format_error_message

logger = logging.getLogger(__name__)


def _fail(e: BaseException) -> None:
    console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e))}")
    sys.exit(1)


def _load_settings(config: str | None, verbose: bool) -> LoaderSettings:
    settings = AppSettings().load(Path(config) if config else None)
    init_console_logging(verbose=verbose, level=settings.log_level)
    return settings


config_option = click.option("--config", "-c", type=click.Path(dir_okay=False), help="Additional settings file")
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Show progress messages")


@click.group(invoke_without_command=True)
@click.version_option(package_name="mle-module-loader")
@click.pass_context
def cli(ctx: click.Context):
    """Fetch an npm package and its dependencies and generate MLE install scripts."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


@cli.command()
@click.argument("name")
@click.option("--output", "-o", type=click.Path(file_okay=False), help="Output directory (default: new temp dir)")
@config_option
@verbose_option
def build(name: str, output: str | None, config: str | None, verbose: bool):
    """Build install.sql / remove.sql for package NAME."""
    try:
        settings = _load_settings(config, verbose)
        outcome = build_package(name, settings, output_dir=Path(output) if output else None)
    except MleLoaderError as e:
        _fail(e)
        return

    result = outcome.result
    table = Table(title=f"MLE modules for {name} ({len(result.records)})", show_header=True, header_style="bold cyan")
    table.add_column("Module", style="green", no_wrap=True)
    table.add_column("Package", style="magenta")
    table.add_column("Version", style="cyan")
    table.add_column("Entry point", style="dim")
    table.add_column("Status")
    for record in result.records:
        status = "[yellow]unresolved[/yellow]" if record.unresolved_references else "[green]closed[/green]"
        table.add_row(
            record.logical_name,
            record.original_name,
            record.version,
            escape_markup(record.relative_path or "default"),
            status,
        )
    console.print(table)

    if result.unresolved:
        lines = "\n".join(escape_markup(report) for report in result.unresolved)
        console.print(
            Panel(
                lines,
                title="Unresolved references - review before installing",
                border_style="yellow",
            )
        )

    console.print(f"\n[bold]Environment:[/bold] {result.env_name}")
    console.print(f"[bold]Install:[/bold]     {escape_markup(outcome.scripts.install_script)}")
    console.print(f"[bold]Remove:[/bold]      {escape_markup(outcome.scripts.remove_script)}")


@cli.command()
@click.argument("name")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@config_option
@verbose_option
def deps(name: str, output_json: bool, config: str | None, verbose: bool):
    """List the dependencies of NAME that would be loaded."""
    try:
        settings = _load_settings(config, verbose)
        packages = DependencyEnumerator(settings.lister_command).list_dependencies(name)
        dependency_set = build_dependency_set(packages)
    except MleLoaderError as e:
        _fail(e)
        return

    if output_json:
        output = [
            {"name": d.original_name, "module_name": d.normalized_name, "version": d.version} for d in dependency_set
        ]
        click.echo(json.dumps(output, indent=2))
        return

    table = Table(title=f"Dependencies of {name} ({len(dependency_set)})", show_header=True, header_style="bold cyan")
    table.add_column("Package", style="magenta")
    table.add_column("Module name", style="green")
    table.add_column("Version", style="cyan")
    for dep in dependency_set:
        table.add_row(dep.original_name, dep.normalized_name, dep.version)
    console.print(table)


@cli.group("entry-points", invoke_without_command=True)
@click.pass_context
def entry_points(ctx: click.Context):
    """Manage secondary entry points."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@entry_points.command("list")
@config_option
def entry_points_list(config: str | None):
    """Show the effective entry-point registry."""
    try:
        registry = _load_settings(config, False).build_registry()
    except MleLoaderError as e:
        _fail(e)
        return

    if not len(registry):
        console.print("[dim]No secondary entry points configured[/dim]")
        return

    table = Table(title="Secondary entry points", show_header=True, header_style="bold cyan")
    table.add_column("Package", style="magenta")
    table.add_column("Relative path", style="cyan")
    table.add_column("Module name", style="green")
    for name in registry.names():
        for override in registry.lookup(name):
            table.add_row(name, override.relative_path, override.logical_name)
    console.print(table)


@entry_points.command("add")
@click.argument("package")
@click.argument("relative_path")
@click.argument("logical_name")
@click.option("--local", "scope", flag_value="local", help="Add locally (just you)")
@click.option("--project", "scope", flag_value="project", default=True, help="Add for project (team)")
@click.option("--global", "scope", flag_value="global", help="Add globally (all projects)")
def entry_points_add(package: str, relative_path: str, logical_name: str, scope: str):
    """Register RELATIVE_PATH of PACKAGE as module LOGICAL_NAME."""
    try:
        override = EntryPointOverride(relative_path=relative_path, logical_name=logical_name)
        path = AppSettings().add_entry_point(package, override, scope)  # type: ignore[arg-type]
    except (ValueError, MleLoaderError) as e:
        _fail(e)
        return

    console.print(f"[green]✓ Added {escape_markup(package)}/{escape_markup(override.relative_path)} as {override.logical_name}[/green]")
    console.print(f"  Scope: {scope}")
    console.print(f"  File: {escape_markup(path)}")


@entry_points.command("remove")
@click.argument("package")
@click.argument("relative_path")
@click.option("--local", "scope", flag_value="local", help="Remove from local")
@click.option("--project", "scope", flag_value="project", default=True, help="Remove from project")
@click.option("--global", "scope", flag_value="global", help="Remove from global")
def entry_points_remove(package: str, relative_path: str, scope: str):
    """Remove a secondary entry point from settings."""
    try:
        removed = AppSettings().remove_entry_point(package, relative_path, scope)  # type: ignore[arg-type]
    except MleLoaderError as e:
        _fail(e)
        return

    if removed:
        console.print(f"[green]✓ Removed {escape_markup(package)}/{escape_markup(relative_path)} from {scope}[/green]")
    else:
        console.print(f"[yellow]No entry point {escape_markup(package)}/{escape_markup(relative_path)} in {scope} settings[/yellow]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
