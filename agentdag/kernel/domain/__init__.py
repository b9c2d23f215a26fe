"""Domain models: workflow graphs, nodes and execution states."""

from agentdag.kernel.domain.dag import AgentNode, Condition, InputBinding, WorkflowGraph
from agentdag.kernel.domain.states import ExecutionState, can_transition

__all__ = [
    "AgentNode",
    "Condition",
    "ExecutionState",
    "InputBinding",
    "WorkflowGraph",
    "can_transition",
]
