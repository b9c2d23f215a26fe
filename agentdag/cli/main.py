"""agentdag CLI - Main entrypoint."""

import importlib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import typer

from agentdag.cli.commands import agents_cmd, plan_cmd, run_cmd, validate_cmd
from agentdag.cli.utils import console, err_console
from agentdag.kernel.config import load_config
from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.logging import configure_logging
from agentdag.stdlib import register_builtin_agents

app = typer.Typer(
    name="agentdag",
    help="agentdag - Multi-agent workflow orchestration with checkpoints and budgets.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

app.add_typer(agents_cmd.app, name="agents", help="Inspect registered agent types")
app.command("validate")(validate_cmd.validate)
app.command("plan")(plan_cmd.plan)
app.command("run")(run_cmd.run)


def _package_version() -> str:
    try:
        return version("agentdag")
    except PackageNotFoundError:
        return "0.0.0+unknown"


def _show_version(value: bool) -> None:
    # Eager, so it runs before click asks for a subcommand
    if value:
        console.print(
            f"[bold blue]agentdag[/bold blue] version [green]{_package_version()}[/green]"
        )
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only log errors"),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Enable debug logging"),
    json_out: bool = typer.Option(False, "--json", help="Output machine-readable JSON"),
    yaml_out: bool = typer.Option(False, "--yaml", help="Output machine-readable YAML"),
    config_path: Path | None = typer.Option(
        None, "--config", "-c", help="Path to agentdag.toml or pyproject.toml"
    ),
    show_version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """agentdag CLI - DAG orchestration of AI agents.

    Global flags are parsed here and stored on `ctx.obj` for subcommands.
    """
    if ctx.obj is None:
        ctx.obj = {}

    output_format = "pretty"
    if json_out:
        output_format = "json"
    elif yaml_out:
        output_format = "yaml"

    try:
        config = load_config(config_path)
    except (ConfigurationError, FileNotFoundError) as e:
        err_console.print(f"[red]✗ Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    level = config.logging.level
    if quiet:
        level = "ERROR"
    elif verbose:
        level = "DEBUG"
    configure_logging(
        level=level,
        format=config.logging.format,
        output_file=config.logging.output_file,
        use_color=config.logging.use_color,
        include_timestamp=config.logging.include_timestamp,
        backtrace=config.logging.backtrace,
        diagnose=config.logging.diagnose,
    )

    # Agent modules register themselves on import
    for module in config.modules:
        try:
            importlib.import_module(module)
        except ImportError as e:
            err_console.print(f"[red]✗ Cannot import agent module '{module}':[/red] {e}")
            raise typer.Exit(1) from e
    register_builtin_agents()

    ctx.obj.update({
        "quiet": quiet,
        "verbose": verbose,
        "output_format": output_format,
        "config": config,
        "log_level": level,
    })


def main() -> None:
    """Main CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
