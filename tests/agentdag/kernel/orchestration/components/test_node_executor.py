"""Tests for NodeExecutor."""

import pytest

from agentdag.kernel.context import ExecutionContext
from agentdag.kernel.domain import ExecutionState, WorkflowGraph
from agentdag.kernel.orchestration import ExecutionOptions
from agentdag.kernel.orchestration.components import (
    FALLBACK_COST,
    ExecutionCoordinator,
    NodeExecutor,
    NodeOutcome,
    estimate_cost,
)
from agentdag.kernel.registry import AgentEntry
from agentdag.kernel.validation.retry import RetryConfig


def make_context(graph: WorkflowGraph, **options) -> ExecutionContext:
    graph.validate()
    return ExecutionContext(graph, ExecutionOptions(**options), graph.layers())


class TestNodeExecutor:
    @pytest.fixture
    def executor(self, registry):
        return NodeExecutor(registry, ExecutionCoordinator(), default_timeout=2.0)

    @pytest.fixture
    def graph(self):
        return (
            WorkflowGraph("wf", default_timeout=9.0)
            .add_agent("a", "echo", inputs={"x": 1}, options={"model": "small"})
            .add_agent(
                "b", "echo", depends_on=["a"], timeout=0.5, retry=RetryConfig(max_retries=4)
            )
        )

    @pytest.mark.asyncio
    async def test_completes_node(self, executor, graph):
        ctx = make_context(graph)

        outcome = await executor.execute_node(ctx, "a")

        assert outcome == NodeOutcome.COMPLETED
        assert ctx.outputs["a"] == {"x": 1}
        assert ctx.timings["a"] >= 0

    @pytest.mark.asyncio
    async def test_unsettled_dependency_is_blocked(self, executor, graph):
        ctx = make_context(graph)

        outcome = await executor.execute_node(ctx, "b", layer_index=1)

        assert outcome == NodeOutcome.BLOCKED
        assert ctx.state("b") == ExecutionState.PENDING
        assert "b" not in ctx.errors

    @pytest.mark.asyncio
    async def test_agent_receives_call_options(self, registry):
        seen = []

        async def spy(inputs, options):
            seen.append(options)
            return {}

        registry.register("spy", AgentEntry(type="spy", run=spy))
        graph = WorkflowGraph("wf").add_agent("s", "spy", options={"model": "large"}, timeout=3.0)
        ctx = make_context(graph, run_id="run-9")
        executor = NodeExecutor(registry, ExecutionCoordinator())

        await executor.execute_node(ctx, "s")

        options = seen[0]
        assert options.run_id == "run-9"
        assert options.node_id == "s"
        assert options.timeout == 3.0
        assert options.attempt == 1
        assert options.options == {"model": "large"}
        assert options.cancellation is None

    def test_timeout_precedence(self, executor, graph):
        ctx = make_context(graph)
        assert executor.resolve_timeout(ctx, graph.nodes["b"]) == 0.5
        assert executor.resolve_timeout(ctx, graph.nodes["a"]) == 9.0

        plain = WorkflowGraph("plain").add_agent("a", "echo")
        assert executor.resolve_timeout(make_context(plain), plain.nodes["a"]) == 2.0

    def test_retry_precedence(self, executor, graph):
        ctx = make_context(graph)
        assert executor.resolve_retry(ctx, graph.nodes["b"]).max_retries == 4
        assert executor.resolve_retry(ctx, graph.nodes["a"]) == RetryConfig()


class TestEstimateCost:
    def test_passes_output(self):
        entry = AgentEntry(
            type="t",
            run=lambda inputs, options: None,
            estimate_cost=lambda inputs, output=None: len(output or "") * 0.1,
        )
        assert estimate_cost(entry, {}, "abc") == pytest.approx(0.3)
        assert estimate_cost(entry, {}) == 0.0

    def test_fallback_on_error(self):
        def broken(inputs, output=None):
            raise RuntimeError("pricing service down")

        entry = AgentEntry(type="t", run=lambda inputs, options: None, estimate_cost=broken)
        assert estimate_cost(entry, {}) == FALLBACK_COST
