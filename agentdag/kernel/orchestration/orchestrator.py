"""Workflow Orchestrator - core execution engine for agentdag.

The Orchestrator walks a WorkflowGraph layer by layer, dispatching the nodes of
each layer concurrently with asyncio.gather(). It enforces admission control
(validation, kill switch, budget preflight) before a run starts and before a
paused run resumes, and keeps paused runs in memory until they are resolved.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from agentdag.kernel.context.execution_context import ExecutionContext, ExecutionSummary
from agentdag.kernel.domain.states import ExecutionState
from agentdag.kernel.exceptions import (
    BudgetExceededError,
    KillSwitchActiveError,
    OrchestratorError,
    ValidationError,
)
from agentdag.kernel.logging import get_logger, reset_correlation_id, set_correlation_id
from agentdag.kernel.orchestration.components.execution_coordinator import ExecutionCoordinator
from agentdag.kernel.orchestration.components.node_executor import (
    NodeExecutor,
    NodeOutcome,
    estimate_cost,
)
from agentdag.kernel.orchestration.events import (
    CheckpointResolved,
    LayerCompleted,
    LayerStarted,
    WorkflowFinished,
    WorkflowPaused,
    WorkflowResumed,
    WorkflowStarted,
)
from agentdag.kernel.orchestration.models import ExecutionOptions, OrchestratorConfig
from agentdag.kernel.registry import AgentRegistry, agent_registry
from agentdag.kernel.utils.node_timer import Timer

if TYPE_CHECKING:
    from collections.abc import Mapping

    from agentdag.kernel.domain.dag import WorkflowGraph
    from agentdag.kernel.orchestration.components.execution_coordinator import EventCallback
    from agentdag.kernel.ports.budget import BudgetPort, PreflightResult
    from agentdag.kernel.ports.kill_switch import KillSwitch

logger = get_logger(__name__)


class Orchestrator:
    """Executes workflows of registered agents.

    The orchestrator is responsible for:
    1. Admission control: validation, kill switch and budget preflight
    2. Running each layer's nodes concurrently with a concurrency limit
    3. Pausing at checkpoints and resuming on a human decision
    4. Tracking in-flight and paused runs by run id

    Examples
    --------
    Example usage::

        orchestrator = Orchestrator(budget=InMemoryBudget(limit=5.0))
        ctx = await orchestrator.execute(graph, ExecutionOptions(inputs={"topic": "ai"}))
        if ctx.is_paused:
            ctx = await orchestrator.resume(ctx.run_id, approved=True)
        print(ctx.get_summary().status)
    """

    def __init__(
        self,
        registry: AgentRegistry | None = None,
        budget: BudgetPort | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args
        ----
            registry: Agent implementations; defaults to the process-wide ``agent_registry``
            budget: Budget admission control; None admits every run
            config: Concurrency, timeout and retry defaults
        """
        self.registry = registry if registry is not None else agent_registry
        self.budget = budget
        self.config = config or OrchestratorConfig()

        self._coordinator = ExecutionCoordinator()
        self._node_executor = NodeExecutor(
            self.registry,
            self._coordinator,
            default_timeout=self.config.default_timeout,
            default_retry=self.config.default_retry,
            strict_validation=self.config.strict_validation,
        )
        self._active: dict[str, ExecutionContext] = {}

    # ------------------------------------------------------------------
    # Admission control
    # ------------------------------------------------------------------

    def validate_workflow(self, graph: WorkflowGraph) -> list[list[str]]:
        """Validate a graph against its own invariants and the registry.

        Every problem (missing dependency, cycle, unknown agent type, ...) is
        reported in a single ``ValidationError``. On success the graph is
        sealed and its layers are returned.
        """
        errors = graph.validation_errors()
        errors.extend(
            f"Agent '{node.id}' has unknown type '{node.type}'"
            for node in graph.values()
            if not self.registry.has(node.type)
        )
        if errors:
            raise ValidationError(f"Invalid workflow definition '{graph.id}'", errors=errors)

        graph.validate()
        return graph.layers()

    async def _check_kill_switch(self, kill_switch: KillSwitch | None) -> None:
        if kill_switch is None:
            return
        check = await kill_switch.check()
        if check.killed:
            logger.warning("Kill switch is active: {reason}", reason=check.reason)
            raise KillSwitchActiveError(check.reason)

    def _preflight(self, estimated_cost: float, *, on_resume: bool) -> PreflightResult | None:
        if self.budget is None:
            return None

        result = self.budget.preflight_check(estimated_cost)
        if not result.allowed:
            logger.warning(
                "Budget preflight denied ${cost:.4f}: {reason}",
                cost=estimated_cost,
                reason=result.reason,
            )
            raise BudgetExceededError(result.reason, estimated_cost, on_resume=on_resume)
        for warning in result.warnings:
            logger.warning("Budget warning: {warning}", warning=warning)
        return result

    # ------------------------------------------------------------------
    # Cost estimation
    # ------------------------------------------------------------------

    def estimate_workflow_cost(
        self, graph: WorkflowGraph, inputs: Mapping[str, Any] | None = None
    ) -> float:
        """Sum of every node's estimated cost over global + static inputs."""
        global_inputs = dict(inputs or {})
        return sum(
            estimate_cost(self.registry.get(node.type), {**global_inputs, **node.static_inputs})
            for node in graph.values()
        )

    def estimate_remaining_cost(self, ctx: ExecutionContext) -> float:
        """Cost a run has yet to add to its ledger.

        Held checkpoints count with the cost recorded when they paused, since
        approval books it; ``PENDING`` nodes are estimated over their current
        inputs. Failed nodes never run again and count nothing.
        """
        held = sum(checkpoint.cost for checkpoint in ctx.held_checkpoints)
        return held + sum(
            estimate_cost(
                self.registry.get(ctx.workflow.nodes[node_id].type), ctx.resolve_inputs(node_id)
            )
            for node_id in ctx.nodes_in(ExecutionState.PENDING)
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        graph: WorkflowGraph,
        options: ExecutionOptions | None = None,
        *,
        on_event: EventCallback | None = None,
        kill_switch: KillSwitch | None = None,
    ) -> ExecutionContext:
        """Run a workflow until it completes, fails or pauses at a checkpoint.

        Parameters
        ----------
        graph : WorkflowGraph
            Workflow to run; validated and sealed on first use
        options : ExecutionOptions | None
            Per-run options (inputs, dry run, continue on error, ...)
        on_event : EventCallback | None
            Receives progress events; sync or async
        kill_switch : KillSwitch | None
            Checked now and before every node dispatch

        Returns
        -------
        ExecutionContext
            The run's context. Per-node failures are recorded in it, not raised.

        Raises
        ------
        ValidationError
            Invalid workflow or unknown agent type. Nothing is executed.
        KillSwitchActiveError
            The kill switch is active. No context is created.
        BudgetExceededError
            The budget preflight denied the estimated cost. No context is created.
        OrchestratorError
            An internal defect, such as a node found blocked after its
            dependencies' layers ran.
        """
        options = options or ExecutionOptions()
        layers = self.validate_workflow(graph)
        await self._check_kill_switch(kill_switch)

        if options.run_id is not None and options.run_id in self._active:
            raise ValidationError(f"Run '{options.run_id}' is already active")

        estimated = 0.0
        preflight: PreflightResult | None = None
        if not options.dry_run:
            estimated = self.estimate_workflow_cost(graph, options.inputs)
            preflight = self._preflight(estimated, on_resume=False)

        ctx = ExecutionContext(graph, options, layers, run_id=options.run_id)
        ctx.costs.estimated = estimated
        if preflight is not None:
            ctx.budget_warnings.extend(preflight.warnings)
        self._active[ctx.run_id] = ctx

        token = set_correlation_id(ctx.run_id)
        try:
            logger.info(
                "Starting workflow '{workflow}' ({nodes} agents, {layers} layers)",
                workflow=graph.id,
                nodes=len(graph),
                layers=len(layers),
            )
            await self._coordinator.notify(
                on_event,
                WorkflowStarted(
                    ctx.run_id,
                    workflow_id=graph.id,
                    total_layers=len(layers),
                    total_nodes=len(graph),
                    estimated_cost=estimated,
                ),
            )
            await self._run_layers(ctx, 0, on_event=on_event, kill_switch=kill_switch)
            await self._settle(ctx, on_event)
        except BaseException:
            self._drop(ctx)
            raise
        finally:
            reset_correlation_id(token)

        return ctx

    async def resume(
        self,
        run: ExecutionContext | str,
        approved: bool = True,
        feedback: str | None = None,
        *,
        on_event: EventCallback | None = None,
        kill_switch: KillSwitch | None = None,
    ) -> ExecutionContext:
        """Resolve the pending checkpoint of a paused run.

        Approval completes the checkpoint node and continues from its layer;
        only nodes still ``PENDING`` are dispatched, so finished work never
        re-runs. Rejection fails the checkpoint node (and any queued
        checkpoints) with ``CheckpointRejectedError`` and ends the run.

        Raises
        ------
        ValidationError
            Unknown run id, or the run has no pending checkpoint.
        KillSwitchActiveError
            The kill switch is active. The run stays paused.
        BudgetExceededError
            The remaining estimated cost was denied. The run stays paused.
        """
        ctx = self._lookup(run)
        checkpoint = ctx.pending_checkpoint
        if checkpoint is None:
            raise ValidationError(f"Run '{ctx.run_id}' has no pending checkpoint")

        await self._check_kill_switch(kill_switch)
        if not ctx.options.dry_run:
            preflight = self._preflight(self.estimate_remaining_cost(ctx), on_resume=True)
            if preflight is not None:
                ctx.budget_warnings.extend(preflight.warnings)

        token = set_correlation_id(ctx.run_id)
        try:
            resolved = ctx.resolve_checkpoint(approved, feedback)
            for item in resolved:
                logger.info(
                    "Checkpoint '{node}' {verdict}",
                    node=item.node_id,
                    verdict="approved" if approved else "rejected",
                )
                await self._coordinator.notify(
                    on_event,
                    CheckpointResolved(
                        ctx.run_id, node_id=item.node_id, approved=approved, feedback=feedback
                    ),
                )

            if approved and not ctx.is_paused:
                from_layer = next(
                    i for i, layer in enumerate(ctx.layers) if checkpoint.node_id in layer
                )
                await self._coordinator.notify(
                    on_event,
                    WorkflowResumed(
                        ctx.run_id, workflow_id=ctx.workflow.id, from_layer=from_layer
                    ),
                )
                await self._run_layers(
                    ctx, from_layer, on_event=on_event, kill_switch=kill_switch
                )
            await self._settle(ctx, on_event)
        except BaseException:
            self._drop(ctx)
            raise
        finally:
            reset_correlation_id(token)

        return ctx

    async def _run_layers(
        self,
        ctx: ExecutionContext,
        start: int,
        *,
        on_event: EventCallback | None,
        kill_switch: KillSwitch | None,
    ) -> None:
        """Dispatch layers from ``start`` until the end, a pause or a stopping failure."""
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _dispatch(node_id: str, layer_index: int) -> NodeOutcome:
            async with semaphore:
                return await self._node_executor.execute_node(
                    ctx, node_id, layer_index, on_event=on_event, kill_switch=kill_switch
                )

        for index in range(start, len(ctx.layers)):
            layer = ctx.layers[index]
            ctx.current_layer = index
            pending = [n for n in layer if ctx.state(n) == ExecutionState.PENDING]

            if pending:
                await self._coordinator.notify(
                    on_event, LayerStarted(ctx.run_id, layer_index=index, nodes=pending)
                )
                timer = Timer()
                results = await asyncio.gather(
                    *(_dispatch(node_id, index) for node_id in pending), return_exceptions=True
                )
                self._check_layer_results(index, pending, results)
                await self._coordinator.notify(
                    on_event,
                    LayerCompleted(
                        ctx.run_id,
                        layer_index=index,
                        duration_ms=timer.duration_ms,
                        failed=[n for n in layer if ctx.state(n) == ExecutionState.FAILED],
                    ),
                )

            if ctx.is_paused:
                return
            if not ctx.options.continue_on_error and any(
                ctx.state(n) == ExecutionState.FAILED for n in layer
            ):
                logger.warning(
                    "Stopping workflow '{workflow}' after failures in layer {layer}",
                    workflow=ctx.workflow.id,
                    layer=index,
                )
                return

    @staticmethod
    def _check_layer_results(
        layer_index: int, node_ids: list[str], results: list[Any]
    ) -> None:
        """Raise for defects surfaced by a settled layer."""
        blocked: list[str] = []
        for node_id, result in zip(node_ids, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.critical(
                    "Unexpected error dispatching agent '{node}': {error}",
                    node=node_id,
                    error=result,
                )
                raise OrchestratorError(
                    f"Unexpected error dispatching agent '{node_id}': {result}"
                ) from result
            if result == NodeOutcome.BLOCKED:
                blocked.append(node_id)

        if blocked:
            raise OrchestratorError(
                f"Agents blocked in layer {layer_index} with unsettled dependencies: "
                f"{', '.join(blocked)}"
            )

    async def _settle(self, ctx: ExecutionContext, on_event: EventCallback | None) -> None:
        """Emit the end-of-call event; drop the run unless it is paused."""
        if ctx.is_paused:
            node_id = ctx.pending_checkpoint.node_id if ctx.pending_checkpoint else ""
            logger.info(
                "Workflow '{workflow}' paused at checkpoint '{node}'",
                workflow=ctx.workflow.id,
                node=node_id,
            )
            await self._coordinator.notify(
                on_event, WorkflowPaused(ctx.run_id, workflow_id=ctx.workflow.id, node_id=node_id)
            )
            return

        self._drop(ctx)
        summary = ctx.get_summary()
        logger.info(
            "Workflow '{workflow}' {status}: {completed}/{total} completed, {failed} failed, "
            "{skipped} skipped, cost ${cost:.4f}",
            workflow=ctx.workflow.id,
            status=summary.status,
            completed=summary.progress.completed,
            total=summary.progress.total,
            failed=summary.progress.failed,
            skipped=summary.progress.skipped,
            cost=summary.costs.actual,
        )
        await self._coordinator.notify(
            on_event,
            WorkflowFinished(
                ctx.run_id,
                workflow_id=ctx.workflow.id,
                status=summary.status,
                duration_ms=summary.duration_ms or 0.0,
            ),
        )

    # ------------------------------------------------------------------
    # Run registry
    # ------------------------------------------------------------------

    def _lookup(self, run: ExecutionContext | str) -> ExecutionContext:
        run_id = run.run_id if isinstance(run, ExecutionContext) else run
        try:
            return self._active[run_id]
        except KeyError:
            raise ValidationError(f"No active execution found: {run_id}") from None

    def _drop(self, ctx: ExecutionContext) -> None:
        self._active.pop(ctx.run_id, None)
        if ctx.ended_at is None:
            ctx.finish()

    def get_status(self, run_id: str) -> ExecutionSummary | None:
        """Summary of an active (running or paused) run, or None."""
        ctx = self._active.get(run_id)
        return ctx.get_summary() if ctx is not None else None

    def list_active(self) -> list[ExecutionSummary]:
        """Summaries of every run currently running or paused."""
        return [ctx.get_summary() for ctx in self._active.values()]

    def abandon(self, run_id: str) -> ExecutionContext | None:
        """Forget a paused run without resolving it; returns its context if it was known."""
        ctx = self._active.get(run_id)
        if ctx is None:
            return None
        logger.info("Abandoning run '{run_id}'", run_id=run_id)
        self._drop(ctx)
        return ctx
