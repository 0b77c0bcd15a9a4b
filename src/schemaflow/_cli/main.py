import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from schemaflow._config import ConfigError, SchemaflowConfig, get_config
from schemaflow._errors import DivergenceError, SchemaflowError
from schemaflow._path import resolve_pointer
from schemaflow._propagate import PropagationResult
from schemaflow._tree import SchemaTree

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Schemaflow CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _load_schema(schema_path: Path) -> dict[str, Any]:
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        err_console.print(f"[red]✗ Could not read schema {escape(str(schema_path))}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    if not isinstance(schema, dict):
        err_console.print("[red]✗ Schema must be a JSON object[/red]")
        raise typer.Exit(code=1)
    return schema


def _build_tree(
    schema: dict[str, Any],
    config: SchemaflowConfig,
    context: dict[str, Any] | None = None,
) -> SchemaTree:
    try:
        return SchemaTree(schema, context=context, config=config)
    except SchemaflowError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _parse_assignment(assignment: str) -> tuple[str, Any]:
    """Split ``/path=value``; the value is read as JSON, or taken as a plain string."""
    path, sep, raw = assignment.partition("=")
    if not sep or not path.strip():
        msg = f"Expected PATH=VALUE, got {assignment!r}"
        raise typer.BadParameter(msg)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return path.strip(), value


def _flush(tree: SchemaTree) -> PropagationResult:
    try:
        return tree.flush()
    except DivergenceError as e:
        err_console.print()
        err_console.print(f"[red]✗ Propagation diverged after {e.batch_count} batches[/red]")
        for path in e.paths:
            err_console.print(f"  [red]•[/red] {escape(path)}")
        err_console.print(f"    [dim]Dependencies: {escape(', '.join(e.dependencies))}[/dim]")
        raise typer.Exit(code=1) from e


@app.command()
def inspect(
    schema_path: Annotated[Path, typer.Argument(help="Path to a JSON schema file")],
) -> None:
    """Show the computed options and dependencies of every node."""
    err_console.print()
    err_console.print(f"[cyan]Loading schema from:[/cyan] {schema_path}")
    tree = _build_tree(_load_schema(schema_path), SchemaflowConfig())

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Node", style="bold")
    table.add_column("Options", style="yellow")
    table.add_column("Dependencies", style="green")

    computed_nodes = list(tree.computed_nodes())
    for path, computed in computed_nodes:
        dependencies = [
            f"{escape(token)} → {escape(resolve_pointer(path, token) or '@')}" for token in computed.dependency_paths
        ]
        table.add_row(escape(path), ", ".join(computed.options), "\n".join(dependencies) or "[dim]-[/dim]")

    err_console.print(
        Panel(
            table,
            title="[bold]Computed properties[/bold]",
            subtitle=f"[dim]{len(computed_nodes)} of {len(tree.nodes)} nodes[/dim]",
            border_style="cyan",
        ),
    )

    for cycle in tree.propagator.graph.cycles():
        err_console.print(f"[yellow]⚠ Cycle: {escape(' → '.join(cycle))}[/yellow]")
    err_console.print()


@app.command()
def run(
    schema_path: Annotated[Path, typer.Argument(help="Path to a JSON schema file")],
    *,
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", "-s", help="Value to write, as PATH=JSON (repeatable)"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="External context as a JSON object"),
    ] = None,
) -> None:
    """Propagate writes through a schema and print the resulting value."""
    err_console.print()
    try:
        config = get_config()
    except ConfigError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    context_value: dict[str, Any] | None = None
    if context is not None:
        try:
            context_value = json.loads(context)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON: {e}"
            raise typer.BadParameter(msg, param_hint="--context") from e
        if not isinstance(context_value, dict):
            msg = "Expected a JSON object"
            raise typer.BadParameter(msg, param_hint="--context")

    err_console.print(f"[cyan]Loading schema from:[/cyan] {schema_path}")
    tree = _build_tree(_load_schema(schema_path), config, context_value)
    results = [_flush(tree)]

    for assignment in assignments or []:
        path, value = _parse_assignment(assignment)
        try:
            tree.set_value(path, value)
        except KeyError as e:
            err_console.print(f"[red]✗ No node at {escape(path)}[/red]")
            raise typer.Exit(code=1) from e
        logger.debug("Set %s = %r", path, value)
    if assignments:
        results.append(_flush(tree))

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Path", style="dim")
    table.add_column("Value")
    for result in results:
        for path, value in result.changes:
            table.add_row(escape(path), escape(json.dumps(value, default=str)))
    batches = sum(result.batches for result in results)
    err_console.print(Panel(table, title="[bold]Changes[/bold]", subtitle=f"[dim]{batches} batches[/dim]"))

    errors = [error for result in results for error in result.errors]
    for node_path, option, message in errors:
        err_console.print(f"[yellow]⚠ {escape(node_path)} ({option}): {escape(message)}[/yellow]")

    out_console.print_json(data=tree.value, default=str)
    err_console.print()
    if errors:
        raise typer.Exit(code=1)


def main() -> None:
    app()
