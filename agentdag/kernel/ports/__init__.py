"""Port interfaces consumed by the orchestrator."""

from agentdag.kernel.ports.budget import BudgetPort, PreflightResult
from agentdag.kernel.ports.kill_switch import NOT_KILLED, KillCheck, KillSwitch

__all__ = ["NOT_KILLED", "BudgetPort", "KillCheck", "KillSwitch", "PreflightResult"]
