"""Tests for admission control: budget preflight and kill switch."""

import pytest

from agentdag.kernel.domain import ExecutionState, WorkflowGraph
from agentdag.kernel.exceptions import (
    BudgetExceededError,
    KillSwitchActiveError,
    NodeKilledError,
    ValidationError,
)
from agentdag.kernel.orchestration import CancellationToken, ExecutionOptions, Orchestrator
from agentdag.kernel.ports import KillCheck
from agentdag.kernel.registry import AgentEntry
from agentdag.stdlib.adapters import InMemoryBudget


class CountingKillSwitch:
    """Becomes active after ``allow`` checks."""

    def __init__(self, allow: int) -> None:
        self.allow = allow
        self.checks = 0

    async def check(self) -> KillCheck:
        self.checks += 1
        if self.checks > self.allow:
            return KillCheck(killed=True, reason="operator stop")
        return KillCheck(killed=False)


@pytest.fixture
def budget_orchestrator(registry, config):
    def build(limit: float, spent: float = 0.0) -> tuple[Orchestrator, InMemoryBudget]:
        budget = InMemoryBudget(limit=limit, spent=spent)
        return Orchestrator(registry=registry, budget=budget, config=config), budget

    return build


class TestBudgetPreflight:
    @pytest.mark.asyncio
    async def test_denied_run_creates_nothing(self, budget_orchestrator, registry, recorder):
        calls = []

        async def tracked(inputs, options):
            calls.append(options.node_id)
            return {}

        registry.register(
            "tracked",
            AgentEntry(type="tracked", run=tracked, estimate_cost=lambda inputs, output=None: 1.0),
        )
        orchestrator, budget = budget_orchestrator(limit=0.5)
        graph = WorkflowGraph("wf").add_agent("a", "tracked")

        with pytest.raises(BudgetExceededError) as exc_info:
            await orchestrator.execute(graph, on_event=recorder)

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.estimated_cost == 1.0
        assert "before execution" in str(exc_info.value)
        assert calls == []
        assert recorder.events == []
        assert orchestrator.list_active() == []
        assert budget.spent == 0.0
        assert budget.checks == [(1.0, False)]

    @pytest.mark.asyncio
    async def test_warnings_are_recorded(self, budget_orchestrator):
        orchestrator, budget = budget_orchestrator(limit=10.0, spent=9.0)
        graph = WorkflowGraph("wf").add_agent("a", "costly")

        ctx = await orchestrator.execute(graph)

        assert ctx.status() == "completed"
        assert ctx.budget_warnings == ["Budget 90% used ($9.00/$10.00)"]
        assert ctx.get_summary().budget_warnings == ctx.budget_warnings
        assert budget.spent == 9.0

    @pytest.mark.asyncio
    async def test_dry_run_skips_preflight(self, budget_orchestrator):
        orchestrator, budget = budget_orchestrator(limit=0.0)
        graph = WorkflowGraph("wf").add_agent("a", "costly")

        ctx = await orchestrator.execute(graph, ExecutionOptions(dry_run=True))

        assert ctx.status() == "completed"
        assert budget.checks == []

    @pytest.mark.asyncio
    async def test_resume_checks_remaining_cost(self, budget_orchestrator):
        orchestrator, budget = budget_orchestrator(limit=1.0)
        graph = (
            WorkflowGraph("wf")
            .add_agent("review", "echo", checkpoint=True)
            .add_agent("publish", "costly", depends_on=["review"])
        )
        ctx = await orchestrator.execute(graph)
        assert budget.checks == [(0.5, True)]

        budget.record(0.8)
        with pytest.raises(BudgetExceededError, match="on resume"):
            await orchestrator.resume(ctx.run_id)

        assert ctx.is_paused
        assert ctx.state("review") == ExecutionState.PAUSED
        assert orchestrator.get_status(ctx.run_id) is not None

        budget.set_limit(5.0)
        await orchestrator.resume(ctx.run_id)
        assert ctx.status() == "completed"
        assert ctx.costs.actual == 0.5

    @pytest.mark.asyncio
    async def test_resume_counts_held_checkpoint_cost(self, budget_orchestrator):
        orchestrator, budget = budget_orchestrator(limit=1.0)
        graph = (
            WorkflowGraph("wf")
            .add_agent("draft", "costly", checkpoint=True)
            .add_agent("publish", "echo", depends_on=["draft"])
        )
        ctx = await orchestrator.execute(graph)
        assert orchestrator.estimate_remaining_cost(ctx) == 0.5

        budget.record(0.9)
        with pytest.raises(BudgetExceededError):
            await orchestrator.resume(ctx)

        assert ctx.is_paused
        assert ctx.costs.actual == 0.0

    @pytest.mark.asyncio
    async def test_reject_is_also_checked(self, budget_orchestrator):
        orchestrator, budget = budget_orchestrator(limit=1.0)
        graph = (
            WorkflowGraph("wf")
            .add_agent("review", "echo", checkpoint=True)
            .add_agent("publish", "costly", depends_on=["review"])
        )
        ctx = await orchestrator.execute(graph)
        budget.record(1.0)

        with pytest.raises(BudgetExceededError):
            await orchestrator.resume(ctx.run_id, approved=False)
        assert ctx.is_paused


class TestKillSwitch:
    @pytest.mark.asyncio
    async def test_active_at_execute(self, orchestrator, recorder):
        token = CancellationToken()
        token.cancel("maintenance")
        graph = WorkflowGraph("wf").add_agent("a", "echo")

        with pytest.raises(KillSwitchActiveError, match="maintenance"):
            await orchestrator.execute(graph, on_event=recorder, kill_switch=token)

        assert recorder.events == []
        assert orchestrator.list_active() == []

    @pytest.mark.asyncio
    async def test_activated_mid_run_stops_new_nodes(self, orchestrator, registry):
        async def stopper(inputs, options):
            options.cancellation.cancel("budget alarm")
            return {"stopped": True}

        registry.register("stopper", AgentEntry(type="stopper", run=stopper))
        graph = (
            WorkflowGraph("wf")
            .add_agent("first", "stopper")
            .add_agent("second", "echo", depends_on=["first"])
        )
        token = CancellationToken()

        ctx = await orchestrator.execute(graph, kill_switch=token)

        assert ctx.state("first") == ExecutionState.COMPLETED
        assert ctx.state("second") == ExecutionState.FAILED
        error = ctx.errors["second"]
        assert isinstance(error, NodeKilledError)
        assert error.reason == "budget alarm"
        assert ctx.status() == "failed"

    @pytest.mark.asyncio
    async def test_checked_before_every_node(self, orchestrator):
        switch = CountingKillSwitch(allow=2)
        graph = (
            WorkflowGraph("wf")
            .add_agent("a", "echo")
            .add_agent("b", "echo", depends_on=["a"])
            .add_agent("c", "echo", depends_on=["b"])
        )

        ctx = await orchestrator.execute(graph, kill_switch=switch)

        # one check at admission, one per dispatched node
        assert switch.checks == 3
        assert ctx.state("a") == ExecutionState.COMPLETED
        assert ctx.state("b") == ExecutionState.FAILED
        assert ctx.state("c") == ExecutionState.PENDING

    @pytest.mark.asyncio
    async def test_active_at_resume_keeps_run_paused(self, orchestrator):
        graph = WorkflowGraph("wf").add_agent("review", "echo", checkpoint=True)
        token = CancellationToken()
        ctx = await orchestrator.execute(graph, kill_switch=token)

        token.cancel()
        with pytest.raises(KillSwitchActiveError):
            await orchestrator.resume(ctx, kill_switch=token)
        assert ctx.is_paused

        token.reset()
        await orchestrator.resume(ctx, kill_switch=token)
        assert ctx.status() == "completed"

    @pytest.mark.asyncio
    async def test_sleep_agent_exits_early(self, orchestrator):
        token = CancellationToken()
        graph = WorkflowGraph("wf").add_agent("wait", "sleep", inputs={"seconds": 5.0})

        async def cancel_soon(event):
            if type(event).__name__ == "NodeStarted":
                token.cancel("stop")

        ctx = await orchestrator.execute(graph, on_event=cancel_soon, kill_switch=token)

        assert ctx.outputs["wait"]["interrupted"] is True
        assert ctx.outputs["wait"]["slept"] < 5.0
