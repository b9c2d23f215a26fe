"""Per-run execution state."""

from agentdag.kernel.context.execution_context import (
    CostLedger,
    ExecutionContext,
    ExecutionSummary,
    PendingCheckpoint,
)

__all__ = ["CostLedger", "ExecutionContext", "ExecutionSummary", "PendingCheckpoint"]
