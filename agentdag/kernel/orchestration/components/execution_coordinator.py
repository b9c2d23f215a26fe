"""Execution coordinator for progress-event delivery.

Every event the orchestrator emits passes through here: it is logged and then
handed to the caller's ``on_event`` callback, if one was given.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from agentdag.kernel.logging import get_logger

if TYPE_CHECKING:
    from agentdag.kernel.orchestration.events import Event

__all__ = ["EventCallback", "ExecutionCoordinator"]

logger = get_logger(__name__)

# Sync callbacks return None, async ones an awaitable
EventCallback = Callable[["Event"], Any]


class ExecutionCoordinator:
    """Delivers progress events to an optional caller callback.

    A callback that raises is logged and ignored: observers must never change
    the outcome of a run.

    Examples
    --------
    Example usage::

        coordinator = ExecutionCoordinator()
        await coordinator.notify(on_event, NodeStarted(run_id, node_id="research"))
    """

    async def notify(self, on_event: EventCallback | None, event: Event) -> None:
        """Log an event and pass it to ``on_event`` (sync or async).

        Parameters
        ----------
        on_event : EventCallback | None
            Caller callback, or None when nobody listens
        event : Event
            Event to deliver
        """
        logger.debug(event.log_message())
        if on_event is None:
            return

        try:
            result = on_event(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.opt(exception=e).warning(
                "Event callback failed for {event}: {error}",
                event=type(event).__name__,
                error=e,
            )
