"""Agent registry commands for agentdag CLI."""

from dataclasses import asdict

import typer
from rich.table import Table

from agentdag.cli.utils import console, is_machine_output, print_output
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.registry import agent_registry

app = typer.Typer()


@app.command("list")
def list_agents(ctx: typer.Context) -> None:
    """List all registered agent types."""
    descriptors = agent_registry.list()
    if is_machine_output(ctx):
        print_output([asdict(d) for d in descriptors], ctx)
        return

    if not descriptors:
        console.print("[yellow]No agents registered[/yellow]")
        raise typer.Exit()

    table = Table(title="Registered agents", show_header=True)
    table.add_column("Type", style="green")
    table.add_column("Name")
    table.add_column("Description", style="dim")
    for d in descriptors:
        table.add_row(d.type, d.name, d.description)
    console.print(table)


@app.command("info")
def agent_info(ctx: typer.Context, type: str) -> None:
    """Show the description and input/output schemas of an agent type."""
    try:
        descriptor = agent_registry.get(type).describe()
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    if is_machine_output(ctx):
        print_output(asdict(descriptor), ctx)
        return

    console.print(f"[bold]{descriptor.type}[/bold] ({descriptor.name})")
    if descriptor.description:
        console.print(descriptor.description)
    for label, schema in (("Input", descriptor.input_schema), ("Output", descriptor.output_schema)):
        if schema is None:
            console.print(f"{label}: any")
            continue
        console.print(f"{label}:")
        for field, spec in schema.get("properties", {}).items():
            marker = " (required)" if field in schema.get("required", []) else ""
            console.print(f"  • {field}: {spec.get('type', 'any')}{marker}")
