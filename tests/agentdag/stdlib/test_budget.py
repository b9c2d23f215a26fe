"""Tests for the in-memory budget adapters."""

import pytest

from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.ports import BudgetPort
from agentdag.stdlib.adapters import InMemoryBudget, UnlimitedBudget


class TestInMemoryBudget:
    def test_implements_port(self):
        assert isinstance(InMemoryBudget(limit=1.0), BudgetPort)
        assert isinstance(UnlimitedBudget(), BudgetPort)

    def test_allows_within_remaining(self):
        budget = InMemoryBudget(limit=1.0, spent=0.25)

        result = budget.preflight_check(0.5)

        assert result.allowed
        assert result.warnings == []
        assert result.remaining == pytest.approx(0.25)

    def test_denies_over_remaining(self):
        budget = InMemoryBudget(limit=1.0, spent=0.75)

        result = budget.preflight_check(0.5)

        assert not result.allowed
        assert result.reason == "Estimated cost $0.5000 exceeds remaining budget $0.2500"

    def test_preflight_never_spends(self):
        budget = InMemoryBudget(limit=1.0)
        budget.preflight_check(0.5)
        budget.preflight_check(2.0)

        assert budget.spent == 0.0
        assert budget.checks == [(0.5, True), (2.0, False)]

    def test_alert_threshold(self):
        budget = InMemoryBudget(limit=2.0, spent=1.5, alert_threshold=0.75)
        assert budget.preflight_check(0.1).warnings == ["Budget 75% used ($1.50/$2.00)"]

    def test_record_and_reset(self):
        budget = InMemoryBudget(limit=1.0)
        budget.record(0.4)
        assert budget.remaining == pytest.approx(0.6)

        budget.reset()
        assert budget.spent == 0.0
        assert budget.checks == []

    def test_remaining_never_negative(self):
        assert InMemoryBudget(limit=1.0, spent=3.0).remaining == 0.0

    @pytest.mark.parametrize(
        "kwargs",
        [{"limit": -1.0}, {"limit": 1.0, "spent": -0.1}, {"limit": 1.0, "alert_threshold": 0}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ConfigurationError):
            InMemoryBudget(**kwargs)

    def test_set_limit(self):
        budget = InMemoryBudget(limit=1.0)
        budget.set_limit(3.0)
        assert budget.preflight_check(2.5).allowed
        with pytest.raises(ConfigurationError):
            budget.set_limit(-1)


class TestUnlimitedBudget:
    def test_admits_everything(self):
        assert UnlimitedBudget().preflight_check(1e9).allowed
