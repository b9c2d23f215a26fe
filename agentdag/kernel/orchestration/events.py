"""Progress event data classes delivered to the caller's ``on_event`` callback."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Event:
    """Base class for all events - provides timestamp and run id."""

    run_id: str
    timestamp: datetime = field(default_factory=datetime.now, init=False)

    def log_message(self) -> str:
        """Get a formatted log message for this event."""
        return f"{self.__class__.__name__} at {self.timestamp.isoformat()}"


# Workflow events
@dataclass
class WorkflowStarted(Event):
    """A run has been admitted and is about to dispatch its first layer."""

    workflow_id: str = ""
    total_layers: int = 0
    total_nodes: int = 0
    estimated_cost: float = 0.0

    def log_message(self) -> str:
        return (
            f"Workflow '{self.workflow_id}' started: {self.total_nodes} agents "
            f"in {self.total_layers} layers (est. ${self.estimated_cost:.4f})"
        )


@dataclass
class WorkflowResumed(Event):
    """A paused run continues after an approved checkpoint."""

    workflow_id: str = ""
    from_layer: int = 0

    def log_message(self) -> str:
        return f"Workflow '{self.workflow_id}' resumed at layer {self.from_layer}"


@dataclass
class WorkflowPaused(Event):
    """A run stopped at a checkpoint, awaiting a decision."""

    workflow_id: str = ""
    node_id: str = ""

    def log_message(self) -> str:
        return f"Workflow '{self.workflow_id}' paused at checkpoint '{self.node_id}'"


@dataclass
class WorkflowFinished(Event):
    """A run reached the end of its call (completed, failed, or stopped)."""

    workflow_id: str = ""
    status: str = ""
    duration_ms: float = 0.0

    def log_message(self) -> str:
        return f"Workflow '{self.workflow_id}' {self.status} in {self.duration_ms / 1000:.2f}s"


# Layer events
@dataclass
class LayerStarted(Event):
    """A layer of independent nodes is being dispatched."""

    layer_index: int = 0
    nodes: list[str] = field(default_factory=list)

    def log_message(self) -> str:
        return f"Layer {self.layer_index} started with {len(self.nodes)} agents"


@dataclass
class LayerCompleted(Event):
    """Every node of a layer has settled."""

    layer_index: int = 0
    duration_ms: float = 0.0
    failed: list[str] = field(default_factory=list)

    def log_message(self) -> str:
        failed = f", {len(self.failed)} failed" if self.failed else ""
        return f"Layer {self.layer_index} completed in {self.duration_ms / 1000:.2f}s{failed}"


# Node events
@dataclass
class NodeStarted(Event):
    """A node moved to running."""

    node_id: str = ""
    layer_index: int = 0

    def log_message(self) -> str:
        return f"Agent '{self.node_id}' started in layer {self.layer_index}"


@dataclass
class NodeCompleted(Event):
    """A node completed and its output is recorded."""

    node_id: str = ""
    output: Any = None
    duration_ms: float = 0.0
    cost: float = 0.0

    def log_message(self) -> str:
        return f"Agent '{self.node_id}' completed in {self.duration_ms / 1000:.2f}s"


@dataclass
class NodeFailed(Event):
    """A node failed; the error is recorded in the context."""

    node_id: str = ""
    error: Exception | None = None
    duration_ms: float = 0.0

    def log_message(self) -> str:
        return f"Agent '{self.node_id}' failed: {self.error}"


@dataclass
class NodeSkipped(Event):
    """A node's condition evaluated to false."""

    node_id: str = ""
    reason: str | None = None

    def log_message(self) -> str:
        return f"Agent '{self.node_id}' skipped: {self.reason or 'condition false'}"


@dataclass
class NodeRetrying(Event):
    """A node attempt failed and will be retried."""

    node_id: str = ""
    attempt: int = 0
    max_attempts: int = 0
    error: Exception | None = None
    delay: float = 0.0

    def log_message(self) -> str:
        return (
            f"Agent '{self.node_id}' attempt {self.attempt}/{self.max_attempts} failed, "
            f"retrying in {self.delay:.2f}s"
        )


# Checkpoint events
@dataclass
class CheckpointReached(Event):
    """A checkpoint node finished; its output awaits a human decision."""

    node_id: str = ""
    output: Any = None

    def log_message(self) -> str:
        return f"Checkpoint '{self.node_id}' awaiting approval"


@dataclass
class CheckpointResolved(Event):
    """A human approved or rejected a checkpoint."""

    node_id: str = ""
    approved: bool = True
    feedback: str | None = None

    def log_message(self) -> str:
        verdict = "approved" if self.approved else "rejected"
        return f"Checkpoint '{self.node_id}' {verdict}"
