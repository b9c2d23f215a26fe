"""Agent registry: maps an agent type name to its implementation.

The registry is populated once at startup (every known agent type registers
itself) and is read-only from the orchestrator's point of view thereafter.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.logging import get_logger

if TYPE_CHECKING:
    from agentdag.kernel.orchestration.models import AgentCallOptions

logger = get_logger(__name__)

# Returns the output, or an awaitable of it
AgentRun = Callable[[dict[str, Any], "AgentCallOptions"], Any]
CostEstimator = Callable[..., float]


def _zero_cost(inputs: dict[str, Any], output: Any = None) -> float:
    return 0.0


@dataclass(frozen=True, slots=True)
class AgentEntry:
    """Registered implementation of one agent type.

    Attributes
    ----------
    type : str
        Registry key
    run : AgentRun
        ``(inputs, options) -> output``; async preferred, sync callables run in a thread
    name : str
        Human readable name (defaults to ``type``)
    description : str
        Short description for discovery
    estimate_cost : CostEstimator
        Pure ``(inputs, output=None) -> float`` estimate used before the run, before
        any resume and, with the output, to record actual cost
    input_model, output_model : type[BaseModel] | None
        Optional schemas checked at the boundary of each call
    """

    type: str
    run: AgentRun
    name: str = ""
    description: str = ""
    estimate_cost: CostEstimator = _zero_cost
    input_model: type[BaseModel] | None = None
    output_model: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", self.type)

    def describe(self) -> AgentDescriptor:
        """Read-only descriptor for discovery."""
        return AgentDescriptor(
            type=self.type,
            name=self.name,
            description=self.description,
            input_schema=self.input_model.model_json_schema() if self.input_model else None,
            output_schema=self.output_model.model_json_schema() if self.output_model else None,
        )


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """What ``AgentRegistry.list()`` exposes about an agent type."""

    type: str
    name: str
    description: str
    input_schema: dict[str, Any] | None = None
    output_schema: dict[str, Any] | None = None


class AgentRegistry:
    """Lookup table from agent type to ``AgentEntry``.

    Examples
    --------
    >>> registry = AgentRegistry()
    >>> async def echo(inputs, options):
    ...     return inputs
    >>> registry.register("echo", AgentEntry(type="echo", run=echo))
    >>> registry.has("echo")
    True
    """

    def __init__(self) -> None:
        self._entries: dict[str, AgentEntry] = {}
        self._frozen = False
        self._lock = Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only; later ``register`` calls fail."""
        self._frozen = True

    def register(self, type: str, entry: AgentEntry) -> None:
        """Register an agent type.

        Raises
        ------
        ValidationError
            If the type is already registered, the entry has no callable ``run``,
            or the registry is frozen.
        """
        if not callable(getattr(entry, "run", None)):
            raise ValidationError(f"Agent '{type}' must have a callable run function")
        if entry.type != type:
            raise ValidationError(
                f"Agent entry type '{entry.type}' does not match registration key '{type}'"
            )

        with self._lock:
            if self._frozen:
                raise ValidationError(f"Agent registry is frozen; cannot register '{type}'")
            if type in self._entries:
                raise ValidationError(f"Agent type '{type}' is already registered")
            self._entries[type] = entry

        logger.debug("Agent registered: {type}", type=type)

    def agent(
        self,
        type: str,
        *,
        name: str = "",
        description: str = "",
        estimate_cost: CostEstimator = _zero_cost,
        input_model: type[BaseModel] | None = None,
        output_model: type[BaseModel] | None = None,
    ) -> Callable[[AgentRun], AgentRun]:
        """Decorator form of ``register``.

        The function docstring is used as description when none is given.

        Examples
        --------
        >>> registry = AgentRegistry()
        >>> @registry.agent("shout")
        ... async def shout(inputs, options):
        ...     '''Upper-case the text input.'''
        ...     return inputs["text"].upper()
        >>> registry.get("shout").description
        'Upper-case the text input.'
        """

        def decorator(fn: AgentRun) -> AgentRun:
            doc = (fn.__doc__ or "").strip().splitlines()
            self.register(
                type,
                AgentEntry(
                    type=type,
                    run=fn,
                    name=name,
                    description=description or (doc[0] if doc else ""),
                    estimate_cost=estimate_cost,
                    input_model=input_model,
                    output_model=output_model,
                ),
            )
            return fn

        return decorator

    def get(self, type: str) -> AgentEntry:
        """Look up an agent type.

        Raises
        ------
        ValidationError
            If the type is unknown.
        """
        try:
            return self._entries[type]
        except KeyError:
            known = ", ".join(sorted(self._entries)) or "none"
            raise ValidationError(f"Unknown agent type: {type} (registered: {known})") from None

    def has(self, type: str) -> bool:
        return type in self._entries

    def list(self) -> tuple[AgentDescriptor, ...]:
        """Descriptors of every registered type, sorted by type."""
        return tuple(self._entries[t].describe() for t in sorted(self._entries))

    def __contains__(self, type: object) -> bool:
        return type in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide registry used when an orchestrator is not given its own
agent_registry = AgentRegistry()
