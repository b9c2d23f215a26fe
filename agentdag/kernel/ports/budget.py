"""Budget Port - admission control consulted before a run starts or resumes.

The budget-accounting subsystem lives outside agentdag. The orchestrator only
asks it whether an estimated cost may be spent.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class PreflightResult(BaseModel):
    """Answer to a preflight check.

    Attributes
    ----------
    allowed : bool
        Whether the estimated cost may be spent
    reason : str | None
        Why the check denied (budget exceeded, rate limited, ...)
    warnings : list[str]
        Non-fatal notices, e.g. a budget close to its alert threshold
    remaining : float | None
        Budget left after the estimated spend, when known
    """

    allowed: bool
    reason: str | None = None
    warnings: list[str] = Field(default_factory=list)
    remaining: float | None = None


@runtime_checkable
class BudgetPort(Protocol):
    """Port interface for budget admission control.

    Implementations must be side-effect free with respect to the run: a
    preflight check reserves nothing and records nothing.
    """

    def preflight_check(self, estimated_cost: float) -> PreflightResult:
        """Decide whether ``estimated_cost`` may be spent."""
        ...
