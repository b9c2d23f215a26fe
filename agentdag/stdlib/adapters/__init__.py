"""Port implementations that ship with agentdag."""

from .budget import InMemoryBudget, UnlimitedBudget

__all__ = [
    "InMemoryBudget",
    "UnlimitedBudget",
]
