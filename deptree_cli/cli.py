"""Typer-based CLI for deptree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .builder import build
from .config_manager import (
    AnalysisConfig,
    clear_analysis_config,
    find_project_root,
    load_analysis_config,
    set_value,
)
from .errors import ConfigError
from .formatter import format_tree_text, generate_export_content
from .graph_export import export_dot, export_json
from .models import BuildResult, Position
from .provider import LocalAnalysisProvider
from .sources import language_for_path
from .treesitter import diagnose as diagnose_grammars

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(
    help="🌳 deptree: bidirectional dependency trees for code symbols.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Show and edit the [analysis] settings")
app.add_typer(config_app, name="config")

EXPORT_FORMATS = ("md", "json", "dot")


def _configure_logging(verbose: bool, analysis: Optional[AnalysisConfig] = None) -> None:
    debug = verbose or (analysis is not None and analysis.debug)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"deptree v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output."),
):
    """deptree: who calls a symbol, and what it calls."""
    _configure_logging(verbose)


def _check_direction(direction: Optional[str]) -> Optional[str]:
    if direction is not None and direction not in config.DIRECTIONS:
        raise typer.BadParameter(
            f"Direction must be one of: {', '.join(config.DIRECTIONS)}", param_hint="--direction"
        )
    return direction


def _run_build(
    file: Path,
    line: int,
    column: int,
    depth: Optional[int],
    direction: Optional[str],
    no_impl: bool,
    verbose: bool,
) -> BuildResult:
    analysis = load_analysis_config()
    if verbose or analysis.debug:
        _configure_logging(True)
    if depth is not None and depth < 1:
        raise typer.BadParameter("Depth must be at least 1.", param_hint="--depth")
    _check_direction(direction)
    if language_for_path(str(file)) is None:
        raise typer.BadParameter(f"Unsupported file type: {file.suffix or file.name}")

    result = build(
        str(file.resolve()),
        Position(line - 1, column - 1),
        max_depth=depth,
        direction=direction,
        analysis=analysis,
        find_implementation=False if no_impl else None,
    )
    if not result.ok:
        console.print(f"[red]❌ {result.error}[/red]")
        raise typer.Exit(code=1)
    return result


@app.command("show")
def show(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file holding the symbol."),
    line: int = typer.Argument(..., min=1, help="1-based line of the symbol."),
    column: int = typer.Argument(..., min=1, help="1-based column of the symbol."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Maximum traversal depth."),
    direction: Optional[str] = typer.Option(None, "--direction", help="up, down or both."),
    no_impl: bool = typer.Option(False, "--no-impl", help="Skip the implementation search."),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output."),
):
    """Print the dependency tree of the symbol at FILE:LINE:COLUMN.

    Example:
      deptree show src/app.ts 12 10 --direction up
    """
    result = _run_build(file, line, column, depth, direction, no_impl, verbose)
    analysis = load_analysis_config()
    for text in format_tree_text(result.graph, result.root_id, analysis.show_internal_vars):
        typer.echo(text)
    typer.echo(f"Nodes: {len(result.graph)} | Edges: {result.graph.edge_count()}")


@app.command("export")
def export(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file holding the symbol."),
    line: int = typer.Argument(..., min=1, help="1-based line of the symbol."),
    column: int = typer.Argument(..., min=1, help="1-based column of the symbol."),
    fmt: str = typer.Option("md", "--format", "-f", help="md, json or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Maximum traversal depth."),
    direction: Optional[str] = typer.Option(None, "--direction", help="up, down or both."),
    no_impl: bool = typer.Option(False, "--no-impl", help="Skip the implementation search."),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output."),
):
    """Write the dependency tree to a markdown, JSON or DOT file."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(EXPORT_FORMATS)}", param_hint="--format")

    result = _run_build(file, line, column, depth, direction, no_impl, verbose)
    root = result.root
    target = output or Path(f"{root.symbol}_deptree.{fmt}")

    if fmt == "json":
        export_json(result.graph, target)
    elif fmt == "dot":
        export_dot(result.graph, target)
    else:
        analysis = load_analysis_config()
        content = generate_export_content(result.graph, result.root_id, analysis.show_project_structure)
        target.write_text(content, encoding="utf-8")

    typer.echo(f"Exported {len(result.graph)} node(s) to {target}")


@app.command("symbol")
def symbol(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file."),
    line: int = typer.Argument(..., min=1, help="1-based line."),
    column: int = typer.Argument(..., min=1, help="1-based column."),
):
    """Print the symbol and language at FILE:LINE:COLUMN."""
    analysis = load_analysis_config()
    path = file.resolve()
    provider = LocalAnalysisProvider(find_project_root(path, analysis), analysis)
    name = provider.symbol_at(str(path), Position(line - 1, column - 1))
    language = language_for_path(str(path)) or "unknown"
    if not name:
        typer.echo(f"No symbol at {file}:{line}:{column} ({language})")
        raise typer.Exit(code=1)
    typer.echo(f"{name} ({language})")


@app.command("diagnose")
def diagnose():
    """Show which tree-sitter grammars are installed."""
    table = Table(title="Tree-sitter grammars")
    table.add_column("Language", style="cyan")
    table.add_column("Package")
    table.add_column("Status")
    for language, (available, package) in sorted(diagnose_grammars().items()):
        status = "[green]available[/green]" if available else "[yellow]missing (text fallback)[/yellow]"
        table.add_row(language, package, status)
    console.print(table)


# ===================================================================
# config sub-commands
# ===================================================================

@config_app.command("show")
def config_show():
    """Print the effective [analysis] settings."""
    analysis = load_analysis_config()
    table = Table(title=f"[analysis] ({config.CONFIG_FILE})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in analysis.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. max_depth."),
    value: str = typer.Argument(..., help="New value."),
):
    """Set one [analysis] value."""
    try:
        updated = set_value(key, value)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from None
    typer.echo(f"✅ {key} = {getattr(updated, key)}")


@config_app.command("reset")
def config_reset():
    """Remove the [analysis] section and return to defaults."""
    if not clear_analysis_config():
        typer.echo(f"❌ Could not write {config.CONFIG_FILE}")
        raise typer.Exit(code=1)
    typer.echo("✅ Analysis settings reset to defaults.")
