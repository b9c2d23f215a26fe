"""Execution plan command for agentdag CLI."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from agentdag.cli.utils import (
    build_orchestrator,
    console,
    is_machine_output,
    load_workflow_or_exit,
    parse_inputs,
    print_output,
    print_validation_error,
)
from agentdag.kernel.exceptions import ValidationError


def plan(
    ctx: typer.Context,
    workflow_file: Annotated[
        Path,
        typer.Argument(help="Path to YAML workflow file", exists=True, dir_okay=False),
    ],
    inputs: Annotated[
        list[str] | None,
        typer.Option("--input", "-i", help="Global input as key=value (repeatable)"),
    ] = None,
) -> None:
    """Show the execution layers and estimated cost of a workflow without running it."""
    graph = load_workflow_or_exit(workflow_file)
    orchestrator = build_orchestrator(ctx)

    try:
        layers = orchestrator.validate_workflow(graph)
    except ValidationError as e:
        print_validation_error(e)
        raise typer.Exit(1) from e
    estimated = orchestrator.estimate_workflow_cost(graph, parse_inputs(inputs))
    checkpoints = sorted(node.id for node in graph.values() if node.checkpoint)

    if is_machine_output(ctx):
        print_output(
            {
                "workflow": graph.id,
                "layers": layers,
                "checkpoints": checkpoints,
                "estimated_cost": estimated,
            },
            ctx,
        )
        return

    table = Table(title=f"Execution plan: {graph.name}", show_header=True)
    table.add_column("Layer", justify="right", style="cyan")
    table.add_column("Agents")
    for index, layer in enumerate(layers):
        names = [f"{n} [yellow](checkpoint)[/yellow]" if n in checkpoints else n for n in layer]
        table.add_row(str(index), ", ".join(names))
    console.print(table)
    console.print(f"Estimated cost: [bold]${estimated:.4f}[/bold]")
