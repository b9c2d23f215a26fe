"""Generic utility agents.

These agents carry no business logic. They are useful for wiring tests, dry
runs of workflow shapes and simple glue steps between real agents.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from agentdag.kernel.logging import get_logger
from agentdag.kernel.registry import AgentEntry, AgentRegistry, agent_registry

if TYPE_CHECKING:
    from agentdag.kernel.orchestration.models import AgentCallOptions

__all__ = ["BUILTIN_AGENTS", "FormatInput", "register_builtin_agents"]

logger = get_logger(__name__)

# Interval at which ``sleep`` polls its cancellation token
_SLEEP_POLL_INTERVAL = 0.1


class FormatInput(BaseModel):
    """Inputs of the ``format`` agent: a template plus any named values."""

    model_config = ConfigDict(extra="allow")

    template: str


async def echo(inputs: dict[str, Any], options: AgentCallOptions) -> dict[str, Any]:
    """Return the inputs unchanged."""
    return dict(inputs)


async def merge(inputs: dict[str, Any], options: AgentCallOptions) -> dict[str, Any]:
    """Merge mapping-valued inputs into one dict; other inputs are kept by key.

    Mappings are merged in input-key order, so later keys win on conflicts.
    """
    merged: dict[str, Any] = {}
    for key in sorted(inputs):
        value = inputs[key]
        if isinstance(value, Mapping):
            merged.update(value)
        else:
            merged[key] = value
    return merged


async def format_text(inputs: dict[str, Any], options: AgentCallOptions) -> dict[str, str]:
    """Render ``template`` with ``str.format`` over the other inputs."""
    values = {k: v for k, v in inputs.items() if k != "template"}
    try:
        text = inputs["template"].format(**values)
    except KeyError as e:
        raise ValueError(f"Template references missing input {e}") from e
    return {"text": text}


async def sleep(inputs: dict[str, Any], options: AgentCallOptions) -> dict[str, Any]:
    """Wait ``seconds`` (input or option), exiting early if the run is killed."""
    seconds = float(inputs.get("seconds", options.options.get("seconds", 0.0)))
    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds

    while (left := deadline - loop.time()) > 0:
        if options.cancellation is not None:
            check = await options.cancellation.check()
            if check.killed:
                logger.debug("sleep in agent '{node}' interrupted", node=options.node_id)
                return {"slept": seconds - left, "interrupted": True}
        await asyncio.sleep(min(left, _SLEEP_POLL_INTERVAL))

    return {"slept": seconds, "interrupted": False}


BUILTIN_AGENTS: tuple[AgentEntry, ...] = (
    AgentEntry(type="echo", run=echo, description="Return the inputs unchanged"),
    AgentEntry(type="merge", run=merge, description="Merge mapping inputs into one dict"),
    AgentEntry(
        type="format",
        run=format_text,
        description="Render a str.format template over the inputs",
        input_model=FormatInput,
    ),
    AgentEntry(type="sleep", run=sleep, description="Wait a number of seconds"),
)


def register_builtin_agents(registry: AgentRegistry | None = None) -> AgentRegistry:
    """Register the utility agents, skipping types that are already present.

    Examples
    --------
    >>> registry = register_builtin_agents(AgentRegistry())
    >>> sorted(d.type for d in registry.list())
    ['echo', 'format', 'merge', 'sleep']
    """
    target = registry if registry is not None else agent_registry
    for entry in BUILTIN_AGENTS:
        if not target.has(entry.type):
            target.register(entry.type, entry)
    return target
