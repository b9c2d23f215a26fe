"""In-memory implementations of the BudgetPort."""

from __future__ import annotations

from threading import Lock

from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.ports.budget import PreflightResult

__all__ = ["InMemoryBudget", "UnlimitedBudget"]


class InMemoryBudget:
    """Fixed spending limit tracked in memory.

    Features:
    - Denies any estimate that would exceed the remaining budget
    - Warns once spend reaches ``alert_threshold`` of the limit
    - ``record`` adds actual spend reported by the caller
    - Check history for tests

    Preflight checks never change ``spent``; only ``record`` does.

    Examples
    --------
    >>> budget = InMemoryBudget(limit=1.0, spent=0.9)
    >>> budget.preflight_check(0.05).allowed
    True
    >>> budget.preflight_check(0.5).allowed
    False
    """

    def __init__(self, limit: float, spent: float = 0.0, alert_threshold: float = 0.8) -> None:
        """Initialize the budget.

        Parameters
        ----------
        limit : float
            Total amount that may be spent
        spent : float
            Amount already spent
        alert_threshold : float
            Fraction of ``limit`` at which preflight checks start returning warnings
        """
        if limit < 0 or spent < 0:
            raise ConfigurationError("budget", "limit and spent must be non-negative")
        if not 0 < alert_threshold <= 1:
            raise ConfigurationError("budget", "alert_threshold must be in (0, 1]")
        self.limit = limit
        self.spent = spent
        self.alert_threshold = alert_threshold

        self.checks: list[tuple[float, bool]] = []
        self._lock = Lock()

    @property
    def remaining(self) -> float:
        return max(self.limit - self.spent, 0.0)

    def preflight_check(self, estimated_cost: float) -> PreflightResult:
        with self._lock:
            remaining = self.remaining
            if estimated_cost > remaining:
                self.checks.append((estimated_cost, False))
                return PreflightResult(
                    allowed=False,
                    reason=(
                        f"Estimated cost ${estimated_cost:.4f} exceeds remaining budget "
                        f"${remaining:.4f}"
                    ),
                    remaining=remaining,
                )

            warnings: list[str] = []
            if self.limit and self.spent / self.limit >= self.alert_threshold:
                warnings.append(
                    f"Budget {round(self.spent / self.limit * 100)}% used "
                    f"(${self.spent:.2f}/${self.limit:.2f})"
                )
            self.checks.append((estimated_cost, True))
            return PreflightResult(
                allowed=True, warnings=warnings, remaining=remaining - estimated_cost
            )

    def record(self, cost: float) -> None:
        """Add actual spend, e.g. ``ctx.costs.actual`` after a run."""
        with self._lock:
            self.spent += cost

    def set_limit(self, limit: float) -> None:
        if limit < 0:
            raise ConfigurationError("budget", "limit must be non-negative")
        with self._lock:
            self.limit = limit

    def reset(self) -> None:
        with self._lock:
            self.spent = 0.0
            self.checks.clear()

    def __repr__(self) -> str:
        return f"InMemoryBudget(limit={self.limit}, spent={self.spent})"


class UnlimitedBudget:
    """Admits every estimate."""

    def preflight_check(self, estimated_cost: float) -> PreflightResult:
        return PreflightResult(allowed=True)
