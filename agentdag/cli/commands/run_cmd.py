"""Workflow execution command for agentdag CLI."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.table import Table

from agentdag.cli.utils import (
    build_orchestrator,
    console,
    err_console,
    is_machine_output,
    load_workflow_or_exit,
    parse_inputs,
    print_output,
    print_validation_error,
)
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.orchestration import ExecutionOptions

if TYPE_CHECKING:
    from agentdag.kernel.context import ExecutionContext, ExecutionSummary
    from agentdag.kernel.orchestration.events import Event

# Exit code of a run left paused at a checkpoint
EXIT_PAUSED = 2


def run(
    ctx: typer.Context,
    workflow_file: Annotated[
        Path,
        typer.Argument(help="Path to YAML workflow file", exists=True, dir_okay=False),
    ],
    inputs: Annotated[
        list[str] | None,
        typer.Option("--input", "-i", help="Global input as key=value (repeatable)"),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Record synthetic outputs instead of calling agents")
    ] = False,
    no_checkpoint: Annotated[
        bool, typer.Option("--no-checkpoint", help="Do not pause at checkpoint agents")
    ] = False,
    continue_on_error: Annotated[
        bool, typer.Option("--continue-on-error", help="Keep running later layers after a failure")
    ] = False,
    approve: Annotated[
        bool | None,
        typer.Option(
            "--approve/--reject",
            help="Decide every checkpoint up front instead of prompting",
        ),
    ] = None,
    feedback: Annotated[
        str | None, typer.Option("--feedback", help="Feedback recorded with a rejection")
    ] = None,
) -> None:
    """Run a workflow, prompting for approval at each checkpoint.

    Exit codes: 0 completed, 1 failed or rejected, 2 left paused at a checkpoint.

    Examples
    --------
    agentdag run workflow.yaml --input topic=agents
    agentdag run workflow.yaml --dry-run
    agentdag --json run workflow.yaml --approve
    """
    graph = load_workflow_or_exit(workflow_file)
    orchestrator = build_orchestrator(ctx)
    options = ExecutionOptions(
        inputs=parse_inputs(inputs),
        dry_run=dry_run,
        continue_on_error=continue_on_error,
        pause_on_checkpoint=not no_checkpoint,
    )
    machine = is_machine_output(ctx)

    def on_event(event: Event) -> None:
        if not machine:
            err_console.print(f"[dim]{event.log_message()}[/dim]")

    try:
        context = asyncio.run(orchestrator.execute(graph, options, on_event=on_event))
        while context.is_paused:
            decision = _decide(context, approve, machine)
            if decision is None:
                break
            approved, reason = decision
            context = asyncio.run(
                orchestrator.resume(
                    context, approved, reason or feedback, on_event=on_event
                )
            )
    except ValidationError as e:
        print_validation_error(e)
        raise typer.Exit(1) from e

    summary = context.get_summary()
    if machine:
        print_output(summary.model_dump(mode="json"), ctx)
    else:
        _print_summary(summary)

    if summary.status == "paused":
        raise typer.Exit(EXIT_PAUSED)
    if summary.status != "completed":
        raise typer.Exit(1)


def _decide(
    context: ExecutionContext, approve: bool | None, machine: bool
) -> tuple[bool, str | None] | None:
    """Decision for the pending checkpoint, or None to leave the run paused."""
    checkpoint = context.pending_checkpoint
    if checkpoint is None:
        return None
    if approve is not None:
        return approve, None
    if machine or not sys.stdin.isatty():
        return None

    console.print(f"\n[bold yellow]Checkpoint:[/bold yellow] {checkpoint.node_id}")
    console.print(checkpoint.output)
    if typer.confirm("Approve and continue?", default=True):
        return True, None
    reason = typer.prompt("Reason for rejection", default="", show_default=False)
    return False, reason or None


def _print_summary(summary: ExecutionSummary) -> None:
    styles = {
        "completed": "green",
        "failed": "red",
        "skipped": "dim",
        "paused": "yellow",
        "pending": "dim",
        "running": "cyan",
    }
    table = Table(title=f"Run {summary.run_id} ({summary.workflow_id})", show_header=True)
    table.add_column("Agent")
    table.add_column("State")
    table.add_column("Duration", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Error", style="red")

    for node_id, state in summary.states.items():
        style = styles.get(state.value, "white")
        timing = summary.timings.get(node_id)
        cost = summary.costs.by_node.get(node_id)
        error = summary.errors.get(node_id)
        table.add_row(
            node_id,
            f"[{style}]{state.value}[/{style}]",
            f"{timing / 1000:.2f}s" if timing is not None else "",
            f"${cost:.4f}" if cost is not None else "",
            error.message if error else "",
        )
    console.print(table)

    status_style = styles.get(summary.status, "white")
    console.print(
        f"Status: [{status_style}]{summary.status}[/{status_style}]  "
        f"({summary.progress.completed}/{summary.progress.total} completed, "
        f"{summary.progress.failed} failed, {summary.progress.skipped} skipped)  "
        f"cost ${summary.costs.actual:.4f} of est. ${summary.costs.estimated:.4f}"
    )
    if summary.paused_node:
        console.print(
            f"[yellow]Run left paused at checkpoint '{summary.paused_node}'. "
            "Pass --approve or --reject to decide checkpoints without prompting.[/yellow]"
        )
