"""Tests for the Orchestrator execution engine."""

import asyncio

import pytest
from pydantic import BaseModel

from agentdag.kernel.domain import ExecutionState, WorkflowGraph
from agentdag.kernel.exceptions import (
    AgentExecutionError,
    AgentTimeoutError,
    OrchestratorError,
    UpstreamFailedError,
    ValidationError,
)
from agentdag.kernel.orchestration import (
    ExecutionOptions,
    Orchestrator,
    OrchestratorConfig,
)
from agentdag.kernel.orchestration.components import NodeOutcome
from agentdag.kernel.orchestration.events import (
    LayerCompleted,
    NodeCompleted,
    NodeFailed,
    NodeRetrying,
    NodeSkipped,
    NodeStarted,
    WorkflowFinished,
    WorkflowStarted,
)
from agentdag.kernel.registry import AgentEntry
from agentdag.kernel.validation.retry import RetryConfig


class CountInput(BaseModel):
    count: int


class CountOutput(BaseModel):
    total: int


async def add_one(inputs, options):
    return {"total": inputs["count"] + 1}


def shout(inputs, options):
    """Sync agent; runs in the default executor."""
    return {"text": inputs["text"].upper()}


class TestExecute:
    @pytest.mark.asyncio
    async def test_diamond_workflow(self, orchestrator, recorder):
        graph = (
            WorkflowGraph("diamond")
            .add_agent("a", "echo", inputs={"x": 1})
            .add_agent("b", "echo", depends_on=["a"], input_map={"val": "a.x"})
            .add_agent("c", "echo", depends_on=["a"])
            .add_agent("d", "merge", depends_on=["b", "c"], input_map={"left": "b", "right": "c"})
        )

        ctx = await orchestrator.execute(graph, on_event=recorder)

        assert ctx.status() == "completed"
        assert ctx.outputs["b"] == {"val": 1}
        assert ctx.outputs["d"] == {"val": 1}
        assert ctx.ended_at is not None

        names = recorder.names()
        assert names[0] == "WorkflowStarted"
        assert names[-1] == "WorkflowFinished"
        assert recorder.of_type(WorkflowFinished)[0].status == "completed"
        assert [e.layer_index for e in recorder.of_type(LayerCompleted)] == [0, 1, 2]

        order = [e.node_id for e in recorder.events if isinstance(e, (NodeStarted, NodeCompleted))]
        assert order.index("d") > order.index("b")
        assert order.index("d") > order.index("c")

    @pytest.mark.asyncio
    async def test_global_inputs_and_sync_agent(self, orchestrator, registry):
        registry.register("shout", AgentEntry(type="shout", run=shout))
        graph = WorkflowGraph("wf").add_agent("loud", "shout")

        ctx = await orchestrator.execute(graph, ExecutionOptions(inputs={"text": "hi"}))

        assert ctx.outputs["loud"] == {"text": "HI"}

    @pytest.mark.asyncio
    async def test_graph_is_reusable_across_concurrent_runs(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("a", "echo").add_agent("b", "echo", depends_on=["a"])

        first, second = await asyncio.gather(
            orchestrator.execute(graph, ExecutionOptions(inputs={"run": 1})),
            orchestrator.execute(graph, ExecutionOptions(inputs={"run": 2})),
        )

        assert first.run_id != second.run_id
        assert first.outputs["b"] == {"run": 1}
        assert second.outputs["b"] == {"run": 2}
        assert graph.sealed

    @pytest.mark.asyncio
    async def test_max_concurrency(self, registry):
        in_flight = 0
        peak = 0

        async def tracked(inputs, options):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return {}

        registry.register("tracked", AgentEntry(type="tracked", run=tracked))
        orchestrator = Orchestrator(registry=registry, config=OrchestratorConfig(max_concurrency=2))
        graph = WorkflowGraph("wide")
        for i in range(6):
            graph.add_agent(f"n{i}", "tracked")

        ctx = await orchestrator.execute(graph)

        assert ctx.status() == "completed"
        assert peak == 2

    @pytest.mark.asyncio
    async def test_finished_run_is_dropped(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("a", "echo")
        ctx = await orchestrator.execute(graph)

        assert orchestrator.get_status(ctx.run_id) is None
        assert orchestrator.list_active() == []

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_change_outcome(self, orchestrator):
        def on_event(event):
            raise RuntimeError("observer bug")

        graph = WorkflowGraph("wf").add_agent("a", "echo")
        ctx = await orchestrator.execute(graph, on_event=on_event)

        assert ctx.status() == "completed"

    @pytest.mark.asyncio
    async def test_async_callback(self, orchestrator):
        seen = []

        async def on_event(event):
            await asyncio.sleep(0)
            seen.append(type(event).__name__)

        graph = WorkflowGraph("wf").add_agent("a", "echo")
        await orchestrator.execute(graph, on_event=on_event)

        assert seen[0] == "WorkflowStarted"
        assert "NodeCompleted" in seen


class TestValidation:
    @pytest.mark.asyncio
    async def test_unknown_type_reported_with_graph_errors(self, orchestrator, recorder):
        graph = (
            WorkflowGraph("wf")
            .add_agent("a", "nope")
            .add_agent("b", "echo", depends_on=["ghost"])
        )

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.execute(graph, on_event=recorder)

        assert "Agent 'a' has unknown type 'nope'" in exc_info.value.errors
        assert "Agent 'b' depends on unknown agent 'ghost'" in exc_info.value.errors
        assert recorder.events == []
        assert orchestrator.list_active() == []

    def test_validate_workflow_returns_layers(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("a", "echo").add_agent("b", "echo", depends_on=["a"])
        assert orchestrator.validate_workflow(graph) == [["a"], ["b"]]
        assert graph.sealed

    @pytest.mark.asyncio
    async def test_duplicate_active_run_id(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("a", "echo", checkpoint=True)
        await orchestrator.execute(graph, ExecutionOptions(run_id="run-1"))

        with pytest.raises(ValidationError, match="already active"):
            await orchestrator.execute(graph, ExecutionOptions(run_id="run-1"))


class TestFailures:
    @pytest.mark.asyncio
    async def test_sibling_failure_is_contained(self, orchestrator, recorder):
        graph = (
            WorkflowGraph("wf")
            .add_agent("broken", "fail")
            .add_agent("fine", "slow", inputs={"seconds": 0.2})
            .add_agent("after", "echo", depends_on=["broken"])
        )

        ctx = await orchestrator.execute(graph, on_event=recorder)

        assert ctx.state("fine") == ExecutionState.COMPLETED
        assert ctx.outputs["fine"] == {"done": True}
        # "fine" was still running when "broken" failed
        finished = [
            (type(e).__name__, e.node_id)
            for e in recorder.events
            if type(e).__name__ in ("NodeCompleted", "NodeFailed")
        ]
        assert finished == [("NodeFailed", "broken"), ("NodeCompleted", "fine")]
        assert ctx.state("broken") == ExecutionState.FAILED
        assert ctx.state("after") == ExecutionState.PENDING
        assert ctx.status() == "failed"

        error = ctx.errors["broken"]
        assert isinstance(error, AgentExecutionError)
        assert isinstance(error.original_error, ValueError)
        assert recorder.of_type(NodeFailed)[0].node_id == "broken"
        assert recorder.of_type(LayerCompleted)[0].failed == ["broken"]

    @pytest.mark.asyncio
    async def test_continue_on_error_fails_dependents_only(self, orchestrator):
        graph = (
            WorkflowGraph("wf")
            .add_agent("broken", "fail")
            .add_agent("fine", "echo")
            .add_agent("after_broken", "echo", depends_on=["broken"])
            .add_agent("after_fine", "echo", depends_on=["fine"])
        )

        ctx = await orchestrator.execute(graph, ExecutionOptions(continue_on_error=True))

        assert ctx.state("after_fine") == ExecutionState.COMPLETED
        assert ctx.state("after_broken") == ExecutionState.FAILED
        error = ctx.errors["after_broken"]
        assert isinstance(error, UpstreamFailedError)
        assert error.failed_dependencies == ["broken"]
        assert ctx.is_finished

    @pytest.mark.asyncio
    async def test_retry_then_success(self, orchestrator, registry, recorder):
        attempts = []

        async def flaky(inputs, options):
            attempts.append(options.attempt)
            if options.attempt < 3:
                raise ConnectionError("transient")
            return {"ok": True}

        registry.register("flaky", AgentEntry(type="flaky", run=flaky))
        graph = WorkflowGraph("wf").add_agent(
            "a", "flaky", retry=RetryConfig(max_retries=3, delay=0.001)
        )

        ctx = await orchestrator.execute(graph, on_event=recorder)

        assert ctx.state("a") == ExecutionState.COMPLETED
        assert attempts == [1, 2, 3]
        assert [e.attempt for e in recorder.of_type(NodeRetrying)] == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_exhausted(self, orchestrator):
        graph = WorkflowGraph("wf", default_retry=RetryConfig(max_retries=2, delay=0.001))
        graph.add_agent("a", "fail")

        ctx = await orchestrator.execute(graph)

        error = ctx.errors["a"]
        assert isinstance(error, AgentExecutionError)
        assert error.attempts == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent(
            "a", "fail", retry=RetryConfig(max_retries=5, delay=0.001)
        )
        options = ExecutionOptions(is_retryable=lambda e: not isinstance(e, ValueError))

        ctx = await orchestrator.execute(graph, options)

        assert ctx.errors["a"].attempts == 1

    @pytest.mark.asyncio
    async def test_timeout(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("a", "slow", inputs={"seconds": 1.0}, timeout=0.05)

        ctx = await orchestrator.execute(graph)

        error = ctx.errors["a"]
        assert isinstance(error, AgentTimeoutError)
        assert error.timeout == 0.05
        assert "timed out after 0.05s" in str(error)

    @pytest.mark.asyncio
    async def test_invalid_input_fails_node(self, orchestrator, registry):
        registry.register(
            "count",
            AgentEntry(type="count", run=add_one, input_model=CountInput, output_model=CountOutput),
        )
        graph = (
            WorkflowGraph("wf")
            .add_agent("good", "count", inputs={"count": "2"})
            .add_agent("bad", "count", inputs={"count": "many"})
        )

        ctx = await orchestrator.execute(graph)

        assert ctx.outputs["good"] == {"total": 3}
        assert ctx.state("bad") == ExecutionState.FAILED
        assert ctx.errors["bad"].attempts == 0

    @pytest.mark.asyncio
    async def test_lenient_validation_uses_raw_output(self, registry, config):
        async def wrong_shape(inputs, options):
            return {"unexpected": True}

        registry.register(
            "wrong", AgentEntry(type="wrong", run=wrong_shape, output_model=CountOutput)
        )
        orchestrator = Orchestrator(
            registry=registry,
            config=OrchestratorConfig(default_retry=config.default_retry, strict_validation=False),
        )
        graph = WorkflowGraph("wf").add_agent("a", "wrong")

        ctx = await orchestrator.execute(graph)

        assert ctx.outputs["a"] == {"unexpected": True}

    def test_layer_defects_raise(self):
        with pytest.raises(OrchestratorError, match="blocked in layer 1"):
            Orchestrator._check_layer_results(1, ["a"], [NodeOutcome.BLOCKED])
        with pytest.raises(OrchestratorError, match="Unexpected error"):
            Orchestrator._check_layer_results(0, ["a"], [RuntimeError("bug")])
        with pytest.raises(asyncio.CancelledError):
            Orchestrator._check_layer_results(0, ["a"], [asyncio.CancelledError()])


class TestConditions:
    @pytest.mark.asyncio
    async def test_skipped_node_lets_dependents_run(self, orchestrator, recorder):
        graph = (
            WorkflowGraph("wf")
            .add_agent("gate", "echo", inputs={"go": False})
            .add_agent(
                "optional",
                "echo",
                depends_on=["gate"],
                condition=lambda ctx: ctx.outputs["gate"]["go"],
            )
            .add_agent(
                "final",
                "echo",
                depends_on=["optional"],
                inputs={"detail": "default"},
                input_map={"detail": "optional.detail"},
            )
        )

        ctx = await orchestrator.execute(graph, on_event=recorder)

        assert ctx.state("optional") == ExecutionState.SKIPPED
        assert ctx.outputs["final"] == {"detail": "default"}
        assert ctx.status() == "completed"
        assert recorder.of_type(NodeSkipped)[0].node_id == "optional"

    @pytest.mark.asyncio
    async def test_raising_condition_fails_node(self, orchestrator):
        def broken(ctx):
            raise KeyError("missing")

        graph = WorkflowGraph("wf").add_agent("a", "echo", condition=broken)

        ctx = await orchestrator.execute(graph)

        assert ctx.state("a") == ExecutionState.FAILED
        assert ctx.errors["a"].attempts == 0


class TestDryRun:
    @pytest.mark.asyncio
    async def test_synthetic_outputs_and_no_pause(self, orchestrator):
        graph = (
            WorkflowGraph("wf")
            .add_agent("a", "costly", inputs={"topic": "ai"})
            .add_agent("b", "fail", depends_on=["a"], checkpoint=True, input_map={"up": "a"})
        )

        ctx = await orchestrator.execute(graph, ExecutionOptions(dry_run=True))

        assert ctx.status() == "completed"
        assert ctx.outputs["a"] == {
            "_dry_run": True,
            "node_id": "a",
            "type": "costly",
            "inputs": {"topic": "ai"},
        }
        assert ctx.outputs["b"]["inputs"]["up"]["_dry_run"] is True
        assert ctx.costs.actual == 0.0
        assert ctx.costs.estimated == 0.0


class TestCosts:
    @pytest.mark.asyncio
    async def test_estimated_and_actual_costs(self, orchestrator, recorder):
        graph = (
            WorkflowGraph("wf")
            .add_agent("a", "costly")
            .add_agent("b", "costly", depends_on=["a"])
            .add_agent("c", "echo", depends_on=["a"])
        )

        ctx = await orchestrator.execute(graph, on_event=recorder)

        assert ctx.costs.estimated == 1.0
        assert ctx.costs.actual == 1.0
        assert ctx.costs.by_node == {"a": 0.5, "b": 0.5, "c": 0.0}
        assert recorder.of_type(WorkflowStarted)[0].estimated_cost == 1.0

    @pytest.mark.asyncio
    async def test_failed_node_costs_nothing(self, orchestrator, registry):
        entry = AgentEntry(
            type="costly_fail",
            run=registry.get("fail").run,
            estimate_cost=lambda inputs, output=None: 2.0,
        )
        registry.register("costly_fail", entry)
        graph = WorkflowGraph("wf").add_agent("a", "costly_fail")

        ctx = await orchestrator.execute(graph)

        assert ctx.costs.estimated == 2.0
        assert ctx.costs.actual == 0.0
        assert ctx.costs.by_node == {}

    @pytest.mark.asyncio
    async def test_estimator_failure_uses_fallback(self, orchestrator, registry):
        def broken_estimate(inputs, output=None):
            raise ZeroDivisionError

        registry.register(
            "odd",
            AgentEntry(type="odd", run=registry.get("echo").run, estimate_cost=broken_estimate),
        )
        graph = WorkflowGraph("wf").add_agent("a", "odd")

        ctx = await orchestrator.execute(graph)

        assert ctx.costs.estimated == 0.01
        assert ctx.costs.by_node == {"a": 0.01}
