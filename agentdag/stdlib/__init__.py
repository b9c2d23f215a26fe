"""Built-in agents and adapters that ship with agentdag."""

from agentdag.stdlib.adapters import InMemoryBudget, UnlimitedBudget
from agentdag.stdlib.agents import BUILTIN_AGENTS, register_builtin_agents

__all__ = ["BUILTIN_AGENTS", "InMemoryBudget", "UnlimitedBudget", "register_builtin_agents"]
