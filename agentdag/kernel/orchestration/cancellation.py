"""Run-scoped cancellation token implementing the ``KillSwitch`` port."""

from __future__ import annotations

from agentdag.kernel.ports.kill_switch import NOT_KILLED, KillCheck


class CancellationToken:
    """Explicit kill switch passed into ``execute``/``resume``.

    The token is also handed to agents through their call options so
    long-running agents can exit cooperatively.

    Examples
    --------
    >>> token = CancellationToken()
    >>> token.cancelled
    False
    >>> token.cancel("operator stop")
    >>> token.reason
    'operator stop'
    """

    __slots__ = ("_cancelled", "_reason")

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "killed") -> None:
        """Activate the switch. Idempotent; the first reason is kept."""
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    def reset(self) -> None:
        """Deactivate the switch, e.g. before resuming a paused run."""
        self._cancelled = False
        self._reason = None

    async def check(self) -> KillCheck:
        if self._cancelled:
            return KillCheck(killed=True, reason=self._reason)
        return NOT_KILLED

    def __repr__(self) -> str:
        state = f"cancelled: {self._reason}" if self._cancelled else "active"
        return f"CancellationToken({state})"
