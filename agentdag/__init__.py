"""agentdag - Multi-agent workflow orchestration.

Workflows are DAGs of agents executed layer by layer with bounded
parallelism, per-agent retry and timeout, human approval checkpoints,
a budget preflight and a kill switch.
"""

from importlib.metadata import PackageNotFoundError, version

from agentdag.kernel import (
    AgentDAGError,
    AgentEntry,
    AgentNode,
    AgentRegistry,
    BudgetExceededError,
    CancellationToken,
    CheckpointRejectedError,
    ExecutionContext,
    ExecutionOptions,
    ExecutionState,
    ExecutionSummary,
    InputBinding,
    KillSwitchActiveError,
    Orchestrator,
    OrchestratorConfig,
    OrchestratorError,
    RetryConfig,
    ValidationError,
    WorkflowGraph,
    agent_registry,
    configure_logging,
    dump_workflow,
    get_logger,
    load_workflow,
)
from agentdag.stdlib import InMemoryBudget, register_builtin_agents

try:
    __version__ = version("agentdag")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"

__all__ = [
    "AgentDAGError",
    "AgentEntry",
    "AgentNode",
    "AgentRegistry",
    "BudgetExceededError",
    "CancellationToken",
    "CheckpointRejectedError",
    "ExecutionContext",
    "ExecutionOptions",
    "ExecutionState",
    "ExecutionSummary",
    "InMemoryBudget",
    "InputBinding",
    "KillSwitchActiveError",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorError",
    "RetryConfig",
    "ValidationError",
    "WorkflowGraph",
    "__version__",
    "agent_registry",
    "configure_logging",
    "dump_workflow",
    "get_logger",
    "load_workflow",
    "register_builtin_agents",
]
