"""Per-run execution state.

An ``ExecutionContext`` is created by ``Orchestrator.execute`` and owns every
mutable fact about one run: node states, outputs, errors, timings, the cost
ledger and the pending checkpoint. All writes happen on the event-loop thread;
the orchestrator is the only writer.
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from agentdag.kernel.domain.states import ExecutionState, can_transition
from agentdag.kernel.exceptions import CheckpointRejectedError, OrchestratorError
from agentdag.kernel.logging import get_logger
from agentdag.kernel.utils.field_extractor import FieldExtractor

if TYPE_CHECKING:
    from agentdag.kernel.domain.dag import WorkflowGraph
    from agentdag.kernel.orchestration.models import ExecutionOptions

logger = get_logger(__name__)

RunStatus = Literal["running", "paused", "completed", "failed"]


@dataclass(slots=True)
class CostLedger:
    """Estimated and actual spend of a run."""

    estimated: float = 0.0
    actual: float = 0.0
    by_node: dict[str, float] = field(default_factory=dict)

    def record(self, node_id: str, cost: float) -> None:
        if node_id in self.by_node:
            raise OrchestratorError(f"Cost for agent '{node_id}' recorded twice")
        self.by_node[node_id] = cost
        self.actual += cost


@dataclass(frozen=True, slots=True)
class PendingCheckpoint:
    """Output of a checkpoint node held back until a human decides."""

    node_id: str
    output: Any
    timing_ms: float
    cost: float


class NodeErrorInfo(BaseModel):
    type: str
    message: str


class RunProgress(BaseModel):
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0


class CostSummary(BaseModel):
    estimated: float = 0.0
    actual: float = 0.0
    by_node: dict[str, float] = Field(default_factory=dict)


class ExecutionSummary(BaseModel):
    """Read-only projection of an ``ExecutionContext``.

    Recomputed from the context on every call; two calls without intervening
    state changes return equal summaries.
    """

    run_id: str
    workflow_id: str
    status: RunStatus
    progress: RunProgress
    states: dict[str, ExecutionState]
    costs: CostSummary
    outputs: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, NodeErrorInfo] = Field(default_factory=dict)
    timings: dict[str, float] = Field(default_factory=dict)
    paused_node: str | None = None
    budget_warnings: list[str] = Field(default_factory=list)
    started_at: datetime
    ended_at: datetime | None = None
    duration_ms: float | None = None


class ExecutionContext:
    """Mutable state of one workflow run.

    Parameters
    ----------
    workflow : WorkflowGraph
        Validated graph the run executes
    options : ExecutionOptions
        Resolved per-run options
    layers : list[list[str]]
        Execution layers of ``workflow``
    run_id : str | None
        Explicit run id; falls back to ``options.run_id``, then a uuid4 hex string
    """

    def __init__(
        self,
        workflow: WorkflowGraph,
        options: ExecutionOptions,
        layers: list[list[str]],
        run_id: str | None = None,
    ) -> None:
        self.run_id = run_id or options.run_id or uuid.uuid4().hex
        self.workflow = workflow
        self.options = options
        self.layers = layers
        self.current_layer = 0

        self.states: dict[str, ExecutionState] = dict.fromkeys(
            workflow.nodes, ExecutionState.PENDING
        )
        self.outputs: dict[str, Any] = {}
        self.errors: dict[str, Exception] = {}
        self.timings: dict[str, float] = {}
        self.costs = CostLedger()
        self.budget_warnings: list[str] = []

        self.pending_checkpoint: PendingCheckpoint | None = None
        self._checkpoint_queue: deque[PendingCheckpoint] = deque()

        self.started_at = datetime.now(UTC)
        self.ended_at: datetime | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def state(self, node_id: str) -> ExecutionState:
        try:
            return self.states[node_id]
        except KeyError:
            raise KeyError(f"Agent '{node_id}' is not part of run '{self.run_id}'") from None

    @property
    def is_paused(self) -> bool:
        return self.pending_checkpoint is not None

    @property
    def has_failures(self) -> bool:
        return any(s == ExecutionState.FAILED for s in self.states.values())

    @property
    def is_finished(self) -> bool:
        """True when no node can change state any more in this run."""
        return all(s.is_terminal for s in self.states.values())

    def nodes_in(self, state: ExecutionState) -> list[str]:
        return [node_id for node_id, s in self.states.items() if s == state]

    @property
    def held_checkpoints(self) -> list[PendingCheckpoint]:
        """The pending checkpoint followed by any queued behind it."""
        if self.pending_checkpoint is None:
            return []
        return [self.pending_checkpoint, *self._checkpoint_queue]

    def can_run(self, node_id: str) -> bool:
        """Whether every dependency of ``node_id`` is ``COMPLETED`` or ``SKIPPED``."""
        return all(self.states[dep].is_pass for dep in self.workflow.nodes[node_id].depends_on)

    def failed_dependencies(self, node_id: str) -> list[str]:
        return sorted(
            dep
            for dep in self.workflow.nodes[node_id].depends_on
            if self.states[dep] == ExecutionState.FAILED
        )

    def resolve_inputs(self, node_id: str) -> dict[str, Any]:
        """Build the inputs for a node call.

        Global run inputs come first, overridden by the node's static inputs,
        overridden by input bindings. A binding whose source produced no
        output (e.g. it was skipped) is left unset so static defaults survive;
        a missing sub-field of an existing output binds ``None``.
        """
        node = self.workflow.nodes[node_id]
        inputs: dict[str, Any] = {**self.options.inputs, **node.static_inputs}

        for input_key, binding in node.input_bindings.items():
            if binding.source not in self.outputs:
                continue
            inputs[input_key] = FieldExtractor.extract(self.outputs[binding.source], binding.key)

        return inputs

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, node_id: str, target: ExecutionState) -> None:
        current = self.state(node_id)
        if not can_transition(current, target):
            logger.critical(
                "Invalid state transition for agent '{node}': {current} -> {target}",
                node=node_id,
                current=current,
                target=target,
            )
            raise OrchestratorError(
                f"Invalid state transition for agent '{node_id}': {current} -> {target}"
            )
        self.states[node_id] = target

    def start(self, node_id: str) -> None:
        self._transition(node_id, ExecutionState.RUNNING)

    def complete(
        self, node_id: str, output: Any, timing_ms: float = 0.0, cost: float = 0.0
    ) -> None:
        """Record a node's output; its cost enters the ledger here and only here."""
        self._transition(node_id, ExecutionState.COMPLETED)
        self.outputs[node_id] = output
        self.timings[node_id] = timing_ms
        self.costs.record(node_id, cost)

    def fail(self, node_id: str, error: Exception, timing_ms: float | None = None) -> None:
        self._transition(node_id, ExecutionState.FAILED)
        self.errors[node_id] = error
        if timing_ms is not None:
            self.timings[node_id] = timing_ms

    def skip(self, node_id: str) -> None:
        self._transition(node_id, ExecutionState.SKIPPED)

    def pause(self, node_id: str, output: Any, timing_ms: float = 0.0, cost: float = 0.0) -> None:
        """Hold a checkpoint node's output until ``resolve_checkpoint``.

        When another checkpoint is already pending, this one is queued behind it.
        """
        self._transition(node_id, ExecutionState.PAUSED)
        checkpoint = PendingCheckpoint(node_id, output, timing_ms, cost)
        if self.pending_checkpoint is None:
            self.pending_checkpoint = checkpoint
        else:
            self._checkpoint_queue.append(checkpoint)

    def resolve_checkpoint(
        self, approved: bool, feedback: str | None = None
    ) -> list[PendingCheckpoint]:
        """Apply a human decision to the pending checkpoint.

        Approval completes the pending node with its held output and cost and
        promotes the next queued checkpoint, if any. Rejection fails the pending
        node and every queued checkpoint with ``CheckpointRejectedError``.

        Returns
        -------
        list[PendingCheckpoint]
            The checkpoints the decision applied to

        Raises
        ------
        OrchestratorError
            If no checkpoint is pending.
        """
        checkpoint = self.pending_checkpoint
        if checkpoint is None:
            raise OrchestratorError(f"Run '{self.run_id}' has no pending checkpoint")

        if approved:
            self.complete(
                checkpoint.node_id, checkpoint.output, checkpoint.timing_ms, checkpoint.cost
            )
            self.pending_checkpoint = (
                self._checkpoint_queue.popleft() if self._checkpoint_queue else None
            )
            return [checkpoint]

        resolved = [checkpoint, *self._checkpoint_queue]
        self._checkpoint_queue.clear()
        self.pending_checkpoint = None
        for item in resolved:
            self.fail(item.node_id, CheckpointRejectedError(item.node_id, feedback), item.timing_ms)
        return resolved

    def finish(self) -> None:
        """Stamp the end time of a run that will not continue."""
        self.ended_at = datetime.now(UTC)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def status(self) -> RunStatus:
        if self.pending_checkpoint is not None:
            return "paused"
        if self.has_failures:
            return "failed"
        if self.is_finished:
            return "completed"
        return "running"

    def get_summary(self) -> ExecutionSummary:
        """Project the context into an ``ExecutionSummary``. Pure and idempotent."""
        values = list(self.states.values())
        duration_ms = (
            (self.ended_at - self.started_at).total_seconds() * 1000
            if self.ended_at is not None
            else None
        )
        return ExecutionSummary(
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            status=self.status(),
            progress=RunProgress(
                completed=values.count(ExecutionState.COMPLETED),
                failed=values.count(ExecutionState.FAILED),
                skipped=values.count(ExecutionState.SKIPPED),
                total=len(values),
            ),
            states=dict(self.states),
            costs=CostSummary(
                estimated=self.costs.estimated,
                actual=self.costs.actual,
                by_node=dict(self.costs.by_node),
            ),
            outputs=dict(self.outputs),
            errors={
                node_id: NodeErrorInfo(type=type(error).__name__, message=str(error))
                for node_id, error in self.errors.items()
            },
            timings=dict(self.timings),
            paused_node=self.pending_checkpoint.node_id if self.pending_checkpoint else None,
            budget_warnings=list(self.budget_warnings),
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_ms=duration_ms,
        )

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(run_id={self.run_id!r}, workflow={self.workflow.id!r}, "
            f"status={self.status()!r})"
        )
