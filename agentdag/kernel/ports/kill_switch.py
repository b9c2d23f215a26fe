"""Kill Switch Port - advisory cancellation checked before each node starts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class KillCheck:
    """Result of a kill-switch check."""

    killed: bool
    reason: str | None = None


NOT_KILLED = KillCheck(killed=False)


@runtime_checkable
class KillSwitch(Protocol):
    """Port interface for run cancellation.

    ``check`` is awaited immediately before every node dispatch and at the start
    of ``execute``/``resume``. An active switch prevents new node starts; it
    does not abort agent calls already in flight.
    """

    async def check(self) -> KillCheck:
        """Report whether work should stop, and why."""
        ...
