"""Core exception hierarchy for agentdag.

Two families live here:

- Fatal errors (``ValidationError`` and its subclasses, ``OrchestratorError``,
  ``ConfigurationError``) are raised to the caller of ``execute``/``resume``.
- Per-node errors (``AgentExecutionError`` and friends,
  ``CheckpointRejectedError``) are recorded in the ``ExecutionContext`` and are
  never raised out of the orchestrator.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class AgentDAGError(Exception):
    """Base exception for all agentdag errors.

    Catch this to handle every error the framework raises.
    """

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(AgentDAGError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("orchestrator", "max_concurrency must be positive")
    """

    def __init__(self, component: str, reason: str) -> None:
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(AgentDAGError):
    """Raised when a workflow cannot be admitted.

    Covers malformed workflows (missing dependency, cycle, unknown agent type)
    and admission-control denials (budget, kill switch). Always fatal to the
    call that raised it; never stored per node.

    Parameters
    ----------
    message : str
        Summary of the failure
    errors : list[str] | None
        Every individual problem found, so a caller can fix a definition in one pass

    Examples
    --------
    >>> err = ValidationError("Invalid workflow", errors=["a depends on missing 'b'"])
    >>> err.errors
    ["a depends on missing 'b'"]
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.message = message
        self.errors: list[str] = list(errors) if errors else []
        if self.errors:
            details = "; ".join(self.errors)
            super().__init__(f"{message}: {details}")
        else:
            super().__init__(message)


class DuplicateNodeError(ValidationError):
    """Raised when a node id is added twice to the same workflow."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node '{node_id}' already exists in the workflow")
        self.node_id = node_id


class BudgetExceededError(ValidationError):
    """Raised when the budget preflight check denies a run or a resume."""

    def __init__(
        self, reason: str | None, estimated_cost: float, *, on_resume: bool = False
    ) -> None:
        phase = "on resume" if on_resume else "before execution"
        super().__init__(f"Budget check failed {phase}: {reason or 'denied'}")
        self.reason = reason
        self.estimated_cost = estimated_cost


class KillSwitchActiveError(ValidationError):
    """Raised when the kill switch is active at ``execute`` or ``resume`` time."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(f"Automation is paused - kill switch is active: {reason or 'no reason'}")
        self.reason = reason


# ============================================================================
# Orchestration Errors
# ============================================================================


class OrchestratorError(AgentDAGError):
    """Raised when the orchestrator hits an internal defect.

    Examples include an invalid state transition or a node observed as blocked
    after layer-ordered dispatch. These indicate bugs, not user errors.
    """

    pass


class AgentExecutionError(AgentDAGError):
    """A node's agent failed: it raised, or its retries were exhausted.

    Stored per node in the execution context.
    """

    def __init__(self, node_id: str, original_error: Exception, attempts: int = 1) -> None:
        self.node_id = node_id
        self.original_error = original_error
        self.attempts = attempts
        super().__init__(f"Agent '{node_id}' failed after {attempts} attempt(s): {original_error}")


class AgentTimeoutError(AgentExecutionError):
    """A node's agent exceeded its deadline on the final attempt."""

    def __init__(
        self, node_id: str, timeout: float, original_error: TimeoutError, attempts: int = 1
    ) -> None:
        self.timeout = timeout
        super().__init__(node_id, original_error, attempts)
        self.args = (f"Agent '{node_id}' timed out after {timeout}s ({attempts} attempt(s))",)


class NodeKilledError(AgentExecutionError):
    """The kill switch was active when the node was about to be dispatched."""

    def __init__(self, node_id: str, reason: str | None = None) -> None:
        self.reason = reason or "killed"
        super().__init__(node_id, RuntimeError(self.reason), attempts=0)
        self.args = (f"Agent '{node_id}' killed before start: {self.reason}",)


class UpstreamFailedError(AgentExecutionError):
    """A dependency of the node failed, so the node could not run."""

    def __init__(self, node_id: str, failed_dependencies: list[str]) -> None:
        self.failed_dependencies = sorted(failed_dependencies)
        deps = ", ".join(self.failed_dependencies)
        super().__init__(node_id, RuntimeError(f"upstream failed: {deps}"), attempts=0)
        self.args = (f"Agent '{node_id}' not started: upstream failed ({deps})",)


class CheckpointRejectedError(AgentDAGError):
    """Recorded on a checkpoint node when a human rejects it on resume."""

    def __init__(self, node_id: str, feedback: str | None = None) -> None:
        self.node_id = node_id
        self.feedback = feedback
        super().__init__(f"Checkpoint rejected: {feedback or 'No reason'}")
