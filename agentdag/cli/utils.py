"""CLI helper utilities for agentdag commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import typer
import yaml
from rich.console import Console

from agentdag.kernel.config import AgentDAGConfig, get_default_config
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.orchestration import Orchestrator
from agentdag.kernel.registry import agent_registry
from agentdag.kernel.workflow_loader import load_workflow
from agentdag.stdlib.adapters import InMemoryBudget

if TYPE_CHECKING:
    from agentdag.kernel.domain.dag import WorkflowGraph


class ContextProtocol(Protocol):
    """Protocol for common interface between Click and Typer contexts."""

    @property
    def obj(self) -> dict[str, Any] | None: ...


console = Console()
err_console = Console(stderr=True)


def output_format(ctx: ContextProtocol | None) -> str:
    """``"json"``, ``"yaml"`` or ``"pretty"`` from the global flags."""
    settings = getattr(ctx, "obj", None) if ctx is not None else None
    if isinstance(settings, dict):
        return str(settings.get("output_format", "pretty"))
    return "pretty"


def is_machine_output(ctx: ContextProtocol | None) -> bool:
    return output_format(ctx) in ("json", "yaml")


def print_output(data: Any, ctx: ContextProtocol | None = None) -> None:
    """Print ``data`` according to ``ctx.obj['output_format']``.

    If ctx is None or no format specified, pretty-print using rich.console.
    """
    fmt = output_format(ctx)
    if fmt == "json":
        typer.echo(json.dumps(data, default=str, indent=2))
    elif fmt == "yaml":
        typer.echo(yaml.safe_dump(data, sort_keys=False))
    elif isinstance(data, (str, int, float)):
        typer.echo(str(data))
    else:
        console.print(data)


def get_config(ctx: ContextProtocol | None) -> AgentDAGConfig:
    settings = getattr(ctx, "obj", None) if ctx is not None else None
    if isinstance(settings, dict) and isinstance(settings.get("config"), AgentDAGConfig):
        return settings["config"]
    return get_default_config()


def build_orchestrator(ctx: ContextProtocol | None) -> Orchestrator:
    """Orchestrator over the process-wide registry, configured from the loaded config."""
    config = get_config(ctx)
    budget = None
    if config.budget.limit is not None:
        budget = InMemoryBudget(
            limit=config.budget.limit, alert_threshold=config.budget.alert_threshold
        )
    return Orchestrator(registry=agent_registry, budget=budget, config=config.orchestrator)


def print_validation_error(error: ValidationError) -> None:
    err_console.print(f"[red]✗ {error.message}[/red]")
    for item in error.errors:
        err_console.print(f"  [red]✗[/red] {item}")


def load_workflow_or_exit(path: Path) -> WorkflowGraph:
    """Load a workflow file, printing problems and exiting with code 1 on failure."""
    try:
        return load_workflow(path)
    except ValidationError as e:
        print_validation_error(e)
        raise typer.Exit(1) from e
    except OSError as e:
        err_console.print(f"[red]✗ File Error:[/red] {e}")
        raise typer.Exit(1) from e


def parse_inputs(pairs: list[str] | None) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars (numbers, bools, lists).

    Examples
    --------
    >>> parse_inputs(["topic=agents", "limit=3"])
    {'topic': 'agents', 'limit': 3}
    """
    inputs: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--input")
        try:
            inputs[key] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            inputs[key] = raw
    return inputs
