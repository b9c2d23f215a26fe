"""Node execution states and the transitions allowed between them."""

from enum import StrEnum


class ExecutionState(StrEnum):
    """Lifecycle state of a single node within one run.

    ``BLOCKED`` is an observation made at dispatch time (dependencies not yet
    settled). It is reported and logged but never stored in a context.
    """

    PENDING = "pending"
    BLOCKED = "blocked"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    PAUSED = "paused"

    @property
    def is_terminal(self) -> bool:
        """Whether the state can never change again for this run."""
        return self in TERMINAL_STATES

    @property
    def is_pass(self) -> bool:
        """Whether dependents of a node in this state may run."""
        return self in PASS_STATES


TERMINAL_STATES = frozenset(
    {ExecutionState.COMPLETED, ExecutionState.FAILED, ExecutionState.SKIPPED}
)

PASS_STATES = frozenset({ExecutionState.COMPLETED, ExecutionState.SKIPPED})

ALLOWED_TRANSITIONS: dict[ExecutionState, frozenset[ExecutionState]] = {
    # PENDING -> FAILED covers nodes refused before start (killed, upstream failed)
    ExecutionState.PENDING: frozenset(
        {ExecutionState.RUNNING, ExecutionState.SKIPPED, ExecutionState.FAILED}
    ),
    ExecutionState.RUNNING: frozenset(
        {ExecutionState.COMPLETED, ExecutionState.FAILED, ExecutionState.PAUSED}
    ),
    ExecutionState.PAUSED: frozenset({ExecutionState.COMPLETED, ExecutionState.FAILED}),
    ExecutionState.COMPLETED: frozenset(),
    ExecutionState.FAILED: frozenset(),
    ExecutionState.SKIPPED: frozenset(),
    ExecutionState.BLOCKED: frozenset(),
}


def can_transition(current: ExecutionState, target: ExecutionState) -> bool:
    """Check whether ``current -> target`` is a valid transition.

    Examples
    --------
    >>> can_transition(ExecutionState.PENDING, ExecutionState.RUNNING)
    True
    >>> can_transition(ExecutionState.COMPLETED, ExecutionState.RUNNING)
    False
    """
    return target in ALLOWED_TRANSITIONS[current]
