"""Node executor for individual agent dispatch.

This module provides the NodeExecutor class that runs one workflow node
through its full lifecycle: kill-switch check, condition, dependency check,
input resolution, agent call with retry and timeout, schema validation, cost
recording and checkpoint pause.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from agentdag.kernel.domain.states import ExecutionState
from agentdag.kernel.exceptions import (
    AgentExecutionError,
    AgentTimeoutError,
    NodeKilledError,
    UpstreamFailedError,
)
from agentdag.kernel.logging import get_logger
from agentdag.kernel.orchestration.events import (
    CheckpointReached,
    NodeCompleted,
    NodeFailed,
    NodeRetrying,
    NodeSkipped,
    NodeStarted,
)
from agentdag.kernel.orchestration.models import AgentCallOptions
from agentdag.kernel.utils.node_timer import Timer
from agentdag.kernel.validation.retry import RetryConfig, RetryExhaustedError, execute_with_retry

if TYPE_CHECKING:
    from agentdag.kernel.context.execution_context import ExecutionContext
    from agentdag.kernel.domain.dag import AgentNode
    from agentdag.kernel.orchestration.components.execution_coordinator import (
        EventCallback,
        ExecutionCoordinator,
    )
    from agentdag.kernel.ports.kill_switch import KillSwitch
    from agentdag.kernel.registry import AgentEntry, AgentRegistry

logger = get_logger(__name__)

# Used when an agent's cost estimator raises
FALLBACK_COST = 0.01


class NodeOutcome(StrEnum):
    """What happened to a node when it was dispatched."""

    COMPLETED = ExecutionState.COMPLETED.value
    FAILED = ExecutionState.FAILED.value
    SKIPPED = ExecutionState.SKIPPED.value
    PAUSED = ExecutionState.PAUSED.value
    BLOCKED = ExecutionState.BLOCKED.value


def estimate_cost(entry: AgentEntry, inputs: dict[str, Any], output: Any = None) -> float:
    """Ask an agent's estimator for a cost, falling back to ``FALLBACK_COST`` on error."""
    try:
        return float(entry.estimate_cost(inputs, output))
    except Exception as e:
        logger.warning(
            "Cost estimation failed for agent type '{type}', using {fallback}: {error}",
            type=entry.type,
            fallback=FALLBACK_COST,
            error=e,
        )
        return FALLBACK_COST


class NodeExecutor:
    """Runs a single node of a workflow against an ``ExecutionContext``.

    Single Responsibility: take one ``PENDING`` node to its next state and
    record the result in the context. Per-node errors are stored, never raised.

    Examples
    --------
    Example usage::

        executor = NodeExecutor(registry, coordinator, default_timeout=30.0)
        outcome = await executor.execute_node(ctx, "research", layer_index=0)
    """

    def __init__(
        self,
        registry: AgentRegistry,
        coordinator: ExecutionCoordinator,
        *,
        default_timeout: float | None = None,
        default_retry: RetryConfig | None = None,
        strict_validation: bool = True,
    ) -> None:
        """Initialize node executor.

        Parameters
        ----------
        registry : AgentRegistry
            Source of agent implementations
        coordinator : ExecutionCoordinator
            Delivers progress events
        default_timeout : float | None
            Per-attempt timeout when neither the node nor the workflow sets one
        default_retry : RetryConfig | None
            Retry policy when neither the node nor the workflow sets one;
            None means a single attempt
        strict_validation : bool
            If True, fail the node when inputs/outputs do not match the agent's
            models. If False, log a warning and continue with the raw data.
        """
        self.registry = registry
        self.coordinator = coordinator
        self.default_timeout = default_timeout
        self.default_retry = default_retry or RetryConfig()
        self.strict_validation = strict_validation

    def resolve_timeout(self, ctx: ExecutionContext, node: AgentNode) -> float | None:
        """Node timeout > workflow default > executor default."""
        if node.timeout is not None:
            return node.timeout
        if ctx.workflow.default_timeout is not None:
            return ctx.workflow.default_timeout
        return self.default_timeout

    def resolve_retry(self, ctx: ExecutionContext, node: AgentNode) -> RetryConfig:
        """Node retry > workflow default > executor default."""
        return node.retry or ctx.workflow.default_retry or self.default_retry

    async def execute_node(
        self,
        ctx: ExecutionContext,
        node_id: str,
        layer_index: int = 0,
        *,
        on_event: EventCallback | None = None,
        kill_switch: KillSwitch | None = None,
    ) -> NodeOutcome:
        """Dispatch one ``PENDING`` node and record its result in ``ctx``.

        Returns
        -------
        NodeOutcome
            The node's new state, or ``BLOCKED`` when its dependencies were not
            settled (nothing is recorded in that case)
        """
        node = ctx.workflow.nodes[node_id]

        if kill_switch is not None:
            check = await kill_switch.check()
            if check.killed:
                error = NodeKilledError(node_id, check.reason)
                return await self._fail(ctx, node_id, error, None, on_event)

        if node.condition is not None:
            try:
                should_run = bool(node.condition(ctx))
            except Exception as e:
                logger.warning(
                    "Condition of agent '{node}' raised: {error}", node=node_id, error=e
                )
                error = AgentExecutionError(node_id, e, attempts=0)
                return await self._fail(ctx, node_id, error, None, on_event)
            if not should_run:
                ctx.skip(node_id)
                await self.coordinator.notify(on_event, NodeSkipped(ctx.run_id, node_id=node_id))
                return NodeOutcome.SKIPPED

        if not ctx.can_run(node_id):
            if failed := ctx.failed_dependencies(node_id):
                error = UpstreamFailedError(node_id, failed)
                return await self._fail(ctx, node_id, error, None, on_event)
            logger.critical(
                "Agent '{node}' is blocked in layer {layer}: dependencies not settled ({states})",
                node=node_id,
                layer=layer_index,
                states={dep: ctx.state(dep).value for dep in sorted(node.depends_on)},
            )
            return NodeOutcome.BLOCKED

        inputs = ctx.resolve_inputs(node_id)
        ctx.start(node_id)
        await self.coordinator.notify(
            on_event, NodeStarted(ctx.run_id, node_id=node_id, layer_index=layer_index)
        )
        timer = Timer()

        if ctx.options.dry_run:
            output: Any = {
                "_dry_run": True,
                "node_id": node_id,
                "type": node.type,
                "inputs": inputs,
            }
            return await self._complete(ctx, node, output, timer.duration_ms, 0.0, on_event)

        entry = self.registry.get(node.type)
        try:
            call_inputs = self._validate(entry.input_model, inputs, node_id, "input")
            output = await self._call_with_retry(
                ctx, node, entry, call_inputs, on_event, kill_switch
            )
            output = self._validate(entry.output_model, output, node_id, "output")
        except AgentExecutionError as e:
            return await self._fail(ctx, node_id, e, timer.duration_ms, on_event)
        except PydanticValidationError as e:
            error = AgentExecutionError(node_id, e, attempts=0)
            return await self._fail(ctx, node_id, error, timer.duration_ms, on_event)

        cost = estimate_cost(entry, inputs, output)
        return await self._complete(ctx, node, output, timer.duration_ms, cost, on_event)

    # ------------------------------------------------------------------
    # Agent call
    # ------------------------------------------------------------------

    async def _call_with_retry(
        self,
        ctx: ExecutionContext,
        node: AgentNode,
        entry: AgentEntry,
        inputs: dict[str, Any],
        on_event: EventCallback | None,
        kill_switch: KillSwitch | None,
    ) -> Any:
        timeout = self.resolve_timeout(ctx, node)
        retry = self.resolve_retry(ctx, node)
        attempt = 0

        async def _attempt() -> Any:
            nonlocal attempt
            attempt += 1
            call_options = AgentCallOptions(
                run_id=ctx.run_id,
                node_id=node.id,
                timeout=timeout,
                attempt=attempt,
                options=node.options,
                cancellation=kill_switch,
            )
            if timeout is None:
                return await self._execute_function(entry, dict(inputs), call_options)
            async with asyncio.timeout(timeout):
                return await self._execute_function(entry, dict(inputs), call_options)

        async def _on_retry(
            failed_attempt: int, max_attempts: int, error: Exception, delay: float
        ) -> None:
            logger.debug(
                "Agent '{node}' error ({attempt}/{max_attempts}): {error}, retrying...",
                node=node.id,
                attempt=failed_attempt,
                max_attempts=max_attempts,
                error=error,
            )
            await self.coordinator.notify(
                on_event,
                NodeRetrying(
                    ctx.run_id,
                    node_id=node.id,
                    attempt=failed_attempt,
                    max_attempts=max_attempts,
                    error=error,
                    delay=delay,
                ),
            )

        try:
            return await execute_with_retry(
                _attempt,
                retry,
                should_retry=ctx.options.is_retryable,
                on_retry=_on_retry,
            )
        except RetryExhaustedError as e:
            last = e.last_error
            if isinstance(last, TimeoutError) and timeout is not None:
                raise AgentTimeoutError(node.id, timeout, last, e.attempts) from last
            raise AgentExecutionError(node.id, last, e.attempts) from last

    async def _execute_function(
        self, entry: AgentEntry, inputs: dict[str, Any], options: AgentCallOptions
    ) -> Any:
        """Call the agent. Sync callables run in the default executor."""
        if inspect.iscoroutinefunction(entry.run):
            return await entry.run(inputs, options)

        # Copy context so ContextVars (correlation id) propagate to the thread pool
        ctx = contextvars.copy_context()
        result = await asyncio.get_running_loop().run_in_executor(
            None, ctx.run, entry.run, inputs, options
        )
        if inspect.isawaitable(result):
            return await result
        return result

    def _validate(
        self, model: type[BaseModel] | None, data: Any, node_id: str, kind: str
    ) -> Any:
        """Check ``data`` against an agent's model, returning the normalised form."""
        if model is None:
            return data
        try:
            return model.model_validate(data).model_dump()
        except PydanticValidationError as e:
            if self.strict_validation:
                raise
            logger.warning(
                "{kind} validation failed for agent '{node}', using raw data: {error}",
                kind=kind.capitalize(),
                node=node_id,
                error=e,
            )
            return data

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def _complete(
        self,
        ctx: ExecutionContext,
        node: AgentNode,
        output: Any,
        duration_ms: float,
        cost: float,
        on_event: EventCallback | None,
    ) -> NodeOutcome:
        if node.checkpoint and ctx.options.pause_on_checkpoint and not ctx.options.dry_run:
            ctx.pause(node.id, output, duration_ms, cost)
            logger.info("Checkpoint reached at agent '{node}'", node=node.id)
            await self.coordinator.notify(
                on_event, CheckpointReached(ctx.run_id, node_id=node.id, output=output)
            )
            return NodeOutcome.PAUSED

        ctx.complete(node.id, output, duration_ms, cost)
        logger.debug(
            "Agent '{node}' completed in {duration:.2f}ms", node=node.id, duration=duration_ms
        )
        await self.coordinator.notify(
            on_event,
            NodeCompleted(
                ctx.run_id, node_id=node.id, output=output, duration_ms=duration_ms, cost=cost
            ),
        )
        return NodeOutcome.COMPLETED

    async def _fail(
        self,
        ctx: ExecutionContext,
        node_id: str,
        error: Exception,
        duration_ms: float | None,
        on_event: EventCallback | None,
    ) -> NodeOutcome:
        ctx.fail(node_id, error, duration_ms)
        logger.warning("Agent '{node}' failed: {error}", node=node_id, error=error)
        await self.coordinator.notify(
            on_event,
            NodeFailed(ctx.run_id, node_id=node_id, error=error, duration_ms=duration_ms or 0.0),
        )
        return NodeOutcome.FAILED
