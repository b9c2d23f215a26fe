"""Orchestration layer for workflow execution.

The orchestration layer is responsible for:
- Admission control (validation, kill switch, budget preflight)
- Executing WorkflowGraphs layer by layer with bounded parallelism
- Pausing at checkpoints and resuming on a human decision

Main exports
------------
Orchestrator : The workflow execution engine
OrchestratorConfig : Process-level defaults
ExecutionOptions : Per-run options
CancellationToken : Run-scoped kill switch

Examples
--------
Example usage::

    from agentdag.kernel.orchestration import Orchestrator, OrchestratorConfig
    orchestrator = Orchestrator(config=OrchestratorConfig(max_concurrency=5))
"""

from agentdag.kernel.orchestration.cancellation import CancellationToken
from agentdag.kernel.orchestration.models import (
    AgentCallOptions,
    ExecutionOptions,
    OrchestratorConfig,
)
from agentdag.kernel.orchestration.orchestrator import Orchestrator

__all__ = [
    "AgentCallOptions",
    "CancellationToken",
    "ExecutionOptions",
    "Orchestrator",
    "OrchestratorConfig",
]
