"""Configuration data models for agentdag."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.orchestration.models import OrchestratorConfig


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for agentdag.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    backtrace : bool, default=True
        Enable backtrace for debugging
    diagnose : bool, default=False
        Show variable values in tracebacks (may leak agent inputs into logs)

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.agentdag.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export AGENTDAG_LOG_LEVEL=DEBUG
    export AGENTDAG_LOG_FORMAT=json
    export AGENTDAG_LOG_FILE=/var/log/agentdag/app.log
    ```
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True
    backtrace: bool = True
    diagnose: bool = False


@dataclass(frozen=True, slots=True)
class BudgetConfig:
    """Budget used by the CLI to build an ``InMemoryBudget``.

    Attributes
    ----------
    limit : float | None
        Spending limit per invocation; None means unlimited
    alert_threshold : float
        Fraction (0.0-1.0) of the limit at which preflight checks warn
    """

    limit: float | None = None
    alert_threshold: float = 0.8

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise ConfigurationError("budget", f"limit must be non-negative, got {self.limit}")
        if not 0 < self.alert_threshold <= 1:
            raise ConfigurationError("budget", "alert_threshold must be in (0, 1]")


@dataclass(frozen=True, slots=True)
class AgentDAGConfig:
    """Complete agentdag configuration.

    Attributes
    ----------
    modules : tuple[str, ...]
        Modules imported at startup so their agents register themselves
    logging : LoggingConfig
        Logging configuration
    orchestrator : OrchestratorConfig
        Orchestrator execution defaults (concurrency, timeouts, retries)
    budget : BudgetConfig
        Budget admission control for CLI runs
    settings : Mapping[str, Any]
        Additional custom settings (read-only)

    Examples
    --------
    TOML configuration in pyproject.toml:

    ```toml
    [tool.agentdag]
    modules = ["myapp.agents"]

    [tool.agentdag.logging]
    level = "DEBUG"

    [tool.agentdag.orchestrator]
    max_concurrency = 5
    default_timeout = 60.0

    [tool.agentdag.orchestrator.retry]
    max_retries = 2
    delay = 0.5

    [tool.agentdag.budget]
    limit = "${AGENTDAG_BUDGET:10.0}"
    ```
    """

    modules: tuple[str, ...] = ()
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    settings: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
