"""agentdag kernel.

The public API of the engine. Applications and the CLI should import from
``agentdag.kernel`` (or the top-level ``agentdag`` package); kernel code
imports from kernel submodules directly.

The exports are grouped by category:
- Workflow definition (graphs, nodes, bindings, states)
- Agent registration
- Execution (orchestrator, options, context)
- Ports and retry policy
- Configuration and workflow files
- Logging
- Exceptions
"""

from agentdag.kernel.config import AgentDAGConfig, load_config
from agentdag.kernel.context import ExecutionContext, ExecutionSummary, PendingCheckpoint
from agentdag.kernel.domain import (
    AgentNode,
    Condition,
    ExecutionState,
    InputBinding,
    WorkflowGraph,
    can_transition,
)
from agentdag.kernel.exceptions import (
    AgentDAGError,
    AgentExecutionError,
    AgentTimeoutError,
    BudgetExceededError,
    CheckpointRejectedError,
    ConfigurationError,
    DuplicateNodeError,
    KillSwitchActiveError,
    NodeKilledError,
    OrchestratorError,
    UpstreamFailedError,
    ValidationError,
)
from agentdag.kernel.logging import configure_logging, get_logger
from agentdag.kernel.orchestration import (
    AgentCallOptions,
    CancellationToken,
    ExecutionOptions,
    Orchestrator,
    OrchestratorConfig,
)
from agentdag.kernel.ports import BudgetPort, KillCheck, KillSwitch, PreflightResult
from agentdag.kernel.registry import AgentEntry, AgentRegistry, agent_registry
from agentdag.kernel.validation import RetryConfig
from agentdag.kernel.workflow_loader import dump_workflow, load_workflow, parse_workflow

__all__ = [
    # Workflow definition
    "AgentNode",
    "Condition",
    "ExecutionState",
    "InputBinding",
    "WorkflowGraph",
    "can_transition",
    # Agents
    "AgentEntry",
    "AgentRegistry",
    "agent_registry",
    # Execution
    "AgentCallOptions",
    "CancellationToken",
    "ExecutionContext",
    "ExecutionOptions",
    "ExecutionSummary",
    "Orchestrator",
    "OrchestratorConfig",
    "PendingCheckpoint",
    # Ports and policy
    "BudgetPort",
    "KillCheck",
    "KillSwitch",
    "PreflightResult",
    "RetryConfig",
    # Configuration and files
    "AgentDAGConfig",
    "dump_workflow",
    "load_config",
    "load_workflow",
    "parse_workflow",
    # Logging
    "configure_logging",
    "get_logger",
    # Exceptions
    "AgentDAGError",
    "AgentExecutionError",
    "AgentTimeoutError",
    "BudgetExceededError",
    "CheckpointRejectedError",
    "ConfigurationError",
    "DuplicateNodeError",
    "KillSwitchActiveError",
    "NodeKilledError",
    "OrchestratorError",
    "UpstreamFailedError",
    "ValidationError",
]
