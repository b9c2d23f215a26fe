"""Shared fixtures for agentdag tests."""

import asyncio
from typing import Any

import pytest

from agentdag.kernel.orchestration import Orchestrator, OrchestratorConfig
from agentdag.kernel.orchestration.events import Event
from agentdag.kernel.registry import AgentEntry, AgentRegistry
from agentdag.kernel.validation.retry import RetryConfig
from agentdag.stdlib import register_builtin_agents


class EventRecorder:
    """Sync ``on_event`` callback that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    def names(self) -> list[str]:
        return [type(e).__name__ for e in self.events]


async def fail_agent(inputs: dict[str, Any], options: Any) -> Any:
    raise ValueError("Intentional test failure")


async def slow_agent(inputs: dict[str, Any], options: Any) -> dict[str, Any]:
    await asyncio.sleep(float(inputs.get("seconds", 1.0)))
    return {"done": True}


def half_dollar(inputs: dict[str, Any], output: Any = None) -> float:
    return 0.5


@pytest.fixture
def registry() -> AgentRegistry:
    """Registry with the built-in agents plus ``fail``, ``slow`` and ``costly``."""
    registry = register_builtin_agents(AgentRegistry())
    registry.register("fail", AgentEntry(type="fail", run=fail_agent))
    registry.register("slow", AgentEntry(type="slow", run=slow_agent))
    registry.register(
        "costly",
        AgentEntry(type="costly", run=registry.get("echo").run, estimate_cost=half_dollar),
    )
    return registry


@pytest.fixture
def config() -> OrchestratorConfig:
    """Single-attempt, short-timeout defaults so failing tests stay fast."""
    return OrchestratorConfig(default_timeout=5.0, default_retry=RetryConfig(max_retries=1))


@pytest.fixture
def orchestrator(registry: AgentRegistry, config: OrchestratorConfig) -> Orchestrator:
    return Orchestrator(registry=registry, config=config)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
