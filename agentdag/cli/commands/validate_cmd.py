"""Workflow validation command for agentdag CLI."""

from pathlib import Path
from typing import Annotated

import typer

from agentdag.cli.utils import (
    build_orchestrator,
    console,
    is_machine_output,
    load_workflow_or_exit,
    print_output,
    print_validation_error,
)
from agentdag.kernel.exceptions import ValidationError


def validate(
    ctx: typer.Context,
    workflow_file: Annotated[
        Path,
        typer.Argument(
            help="Path to YAML workflow file to validate",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
) -> None:
    """Validate a YAML workflow file.

    This command validates:
    - YAML syntax and document structure
    - Dependency and input-binding references
    - Absence of cycles
    - Agent types against the registry

    Examples
    --------
    agentdag validate workflow.yaml
    """
    graph = load_workflow_or_exit(workflow_file)
    orchestrator = build_orchestrator(ctx)

    try:
        orchestrator.validate_workflow(graph)
    except ValidationError as e:
        if is_machine_output(ctx):
            print_output({"valid": False, "workflow": graph.id, "errors": e.errors}, ctx)
        else:
            print_validation_error(e)
        raise typer.Exit(1) from e

    if is_machine_output(ctx):
        print_output({"valid": True, "workflow": graph.id, "errors": []}, ctx)
    else:
        console.print(
            f"[green]✓ Validation successful:[/green] {workflow_file} "
            f"({len(graph)} agents)"
        )
