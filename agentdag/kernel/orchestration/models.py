"""Option and configuration models for the orchestrator."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.validation.retry import RetryConfig

if TYPE_CHECKING:
    from agentdag.kernel.ports.kill_switch import KillSwitch

DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_AGENT_TIMEOUT = 300.0
DEFAULT_RETRY = RetryConfig(max_retries=3, delay=1.0, backoff=2.0, max_delay=30.0)


def _always_retry(error: Exception) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    """Process-level defaults for an ``Orchestrator``.

    Attributes
    ----------
    max_concurrency : int
        Maximum number of nodes in flight at once within a layer
    default_timeout : float | None
        Per-attempt agent timeout in seconds when neither node nor workflow sets one
    default_retry : RetryConfig
        Retry policy when neither node nor workflow sets one
    strict_validation : bool
        Fail a node whose inputs/outputs do not match its agent's models;
        when False a mismatch is logged and the raw data is used

    Examples
    --------
    TOML configuration::

        [tool.agentdag.orchestrator]
        max_concurrency = 4
        default_timeout = 120.0

        [tool.agentdag.orchestrator.retry]
        max_retries = 2
    """

    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    default_timeout: float | None = DEFAULT_AGENT_TIMEOUT
    default_retry: RetryConfig = DEFAULT_RETRY
    strict_validation: bool = True

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ConfigurationError(
                "orchestrator", f"max_concurrency must be >= 1, got {self.max_concurrency}"
            )
        if self.default_timeout is not None and self.default_timeout <= 0:
            raise ConfigurationError("orchestrator", "default_timeout must be positive")


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    """Per-run options for ``Orchestrator.execute``.

    Attributes
    ----------
    inputs : Mapping[str, Any]
        Global inputs visible to every node, overridden by each node's static inputs
    dry_run : bool
        Record synthetic outputs instead of calling agents; skips the budget check
    continue_on_error : bool
        Keep starting later layers after a node fails
    pause_on_checkpoint : bool
        Pause at checkpoint nodes; when False they complete like any other node
    is_retryable : Callable[[Exception], bool]
        Decides whether a failed attempt is retried
    run_id : str | None
        Explicit run id; generated when omitted
    """

    inputs: Mapping[str, Any] = field(default_factory=dict)
    dry_run: bool = False
    continue_on_error: bool = False
    pause_on_checkpoint: bool = True
    is_retryable: Callable[[Exception], bool] = _always_retry
    run_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", MappingProxyType(dict(self.inputs)))


@dataclass(frozen=True, slots=True)
class AgentCallOptions:
    """Second argument of every agent call.

    Attributes
    ----------
    run_id : str
        Id of the run making the call
    node_id : str
        Node being executed
    timeout : float | None
        Deadline of the current attempt in seconds
    attempt : int
        1-indexed attempt number
    options : Mapping[str, Any]
        The node's opaque ``options`` from the workflow definition
    cancellation : KillSwitch | None
        The run's kill switch, for cooperative early exit
    """

    run_id: str
    node_id: str
    timeout: float | None = None
    attempt: int = 1
    options: Mapping[str, Any] = field(default_factory=dict)
    cancellation: KillSwitch | None = None
