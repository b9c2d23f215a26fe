"""Components used by the orchestrator.

This package contains reusable components that implement specific
responsibilities in the orchestration pipeline:

- ExecutionCoordinator: Delivers progress events to the caller
- NodeExecutor: Runs individual nodes with retry, timeout and checkpoints
"""

from agentdag.kernel.orchestration.components.execution_coordinator import (
    EventCallback,
    ExecutionCoordinator,
)
from agentdag.kernel.orchestration.components.node_executor import (
    FALLBACK_COST,
    NodeExecutor,
    NodeOutcome,
    estimate_cost,
)

__all__ = [
    "FALLBACK_COST",
    "EventCallback",
    "ExecutionCoordinator",
    "NodeExecutor",
    "NodeOutcome",
    "estimate_cost",
]
