"""Workflow primitives: AgentNode, InputBinding and WorkflowGraph.

A ``WorkflowGraph`` describes agent slots and their dependency edges. It is
validated once (missing references, cycles) and then sealed, after which it
can back any number of concurrent runs.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from agentdag.kernel.exceptions import DuplicateNodeError, ValidationError
from agentdag.kernel.validation.retry import RetryConfig

if TYPE_CHECKING:
    from collections.abc import ItemsView, Iterator, KeysView, ValuesView

    from agentdag.kernel.context.execution_context import ExecutionContext

Condition = Callable[["ExecutionContext"], bool]

BINDING_SEPARATOR = "."

_EMPTY_SET: frozenset[str] = frozenset()


class Color(Enum):
    """Colors for DFS cycle detection algorithm."""

    WHITE = auto()  # Unvisited
    GRAY = auto()  # In recursion stack
    BLACK = auto()  # Completely processed


@dataclass(frozen=True, slots=True)
class InputBinding:
    """Pulls a value out of a dependency's output once it completes.

    Attributes
    ----------
    source : str
        Id of the node whose output is read
    key : str | None
        Dot path into that output; ``None`` binds the whole output
    """

    source: str
    key: str | None = None

    @classmethod
    def parse(cls, spec: str | InputBinding | tuple[str, str | None]) -> InputBinding:
        """Build a binding from ``"node"``, ``"node.key.sub"`` or ``(node, key)``.

        Examples
        --------
        >>> InputBinding.parse("research.summary")
        InputBinding(source='research', key='summary')
        >>> InputBinding.parse("research")
        InputBinding(source='research', key=None)
        """
        if isinstance(spec, InputBinding):
            return spec
        if isinstance(spec, tuple):
            source, key = spec
            return cls(source, key or None)
        source, _, key = spec.partition(BINDING_SEPARATOR)
        return cls(source, key or None)

    def __str__(self) -> str:
        return f"{self.source}{BINDING_SEPARATOR}{self.key}" if self.key else self.source


@dataclass(frozen=True, slots=True)
class AgentNode:
    """Immutable slot in a workflow graph.

    Supports fluent chaining via ``.after()``.
    """

    id: str
    type: str
    depends_on: frozenset[str] = field(default_factory=frozenset)
    static_inputs: Mapping[str, Any] = field(default_factory=dict)
    input_bindings: Mapping[str, InputBinding] = field(default_factory=dict)
    condition: Condition | None = None
    checkpoint: bool = False
    timeout: float | None = None
    retry: RetryConfig | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id or BINDING_SEPARATOR in self.id:
            raise ValidationError(
                f"Invalid node id {self.id!r}: must be non-empty and contain no "
                f"'{BINDING_SEPARATOR}'"
            )
        if not self.type:
            raise ValidationError(f"Node '{self.id}' has no agent type")
        if self.timeout is not None and self.timeout <= 0:
            raise ValidationError(f"Node '{self.id}' timeout must be positive")
        object.__setattr__(self, "id", sys.intern(self.id))
        object.__setattr__(self, "depends_on", frozenset(sys.intern(d) for d in self.depends_on))
        object.__setattr__(self, "static_inputs", MappingProxyType(dict(self.static_inputs)))
        bindings = {k: InputBinding.parse(v) for k, v in self.input_bindings.items()}
        object.__setattr__(self, "input_bindings", MappingProxyType(bindings))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @property
    def referenced_ids(self) -> frozenset[str]:
        """Every node id this node refers to, via edges or bindings."""
        return self.depends_on | {b.source for b in self.input_bindings.values()}

    def after(self, *node_ids: str) -> AgentNode:
        """Create a new AgentNode that also depends on ``node_ids``.

        Examples
        --------
        >>> node = AgentNode("draft", "writer").after("research")
        >>> sorted(node.depends_on)
        ['research']
        """
        return replace(self, depends_on=self.depends_on | frozenset(node_ids))

    def __repr__(self) -> str:
        deps_str = f", depends_on={sorted(self.depends_on)}" if self.depends_on else ""
        cp_str = ", checkpoint=True" if self.checkpoint else ""
        return f"AgentNode('{self.id}', type='{self.type}'{deps_str}{cp_str})"


class WorkflowGraph:
    """A directed acyclic graph of agent nodes.

    Provides:
    - Node management with duplicate detection
    - Validation collecting every problem in one pass
    - Topological layering into parallel execution groups
    - Round-trip through a plain-data form

    Examples
    --------
    >>> graph = WorkflowGraph("brief", "Research brief")
    >>> _ = graph.add_agent("research", "echo")
    >>> _ = graph.add_agent("analysis", "echo", depends_on=["research"],
    ...                     input_map={"data": "research"})
    >>> graph.layers()
    [['research'], ['analysis']]
    """

    def __init__(
        self,
        id: str,
        name: str | None = None,
        *,
        description: str = "",
        version: str = "1.0.0",
        default_timeout: float | None = None,
        default_retry: RetryConfig | None = None,
        metadata: Mapping[str, Any] | None = None,
        nodes: Iterable[AgentNode] | None = None,
    ) -> None:
        self.id = id
        self.name = name or id
        self.description = description
        self.version = version
        self.default_timeout = default_timeout
        self.default_retry = default_retry
        self.metadata: dict[str, Any] = dict(metadata or {})
        self._nodes: dict[str, AgentNode] = {}

        self._layers_cache: list[list[str]] | None = None
        self._sealed = False

        if nodes:
            self.add_many(*nodes)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, AgentNode]:
        """Read-only view of the nodes by id; use ``add`` to change it."""
        return MappingProxyType(self._nodes)

    @property
    def sealed(self) -> bool:
        """True once ``validate()`` has succeeded; the graph is then immutable."""
        return self._sealed

    def add(self, node: AgentNode) -> WorkflowGraph:
        """Add a node to the graph.

        Raises
        ------
        DuplicateNodeError
            If a node with the same id already exists.
        ValidationError
            If the graph is already sealed.
        """
        if self._sealed:
            raise ValidationError(f"Workflow '{self.id}' is validated and can no longer change")
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._nodes[node.id] = node
        self._layers_cache = None
        return self

    def add_many(self, *nodes: AgentNode) -> WorkflowGraph:
        """Add several nodes; nothing is added if any id is a duplicate."""
        seen: set[str] = set()
        for node in nodes:
            if node.id in self._nodes or node.id in seen:
                raise DuplicateNodeError(node.id)
            seen.add(node.id)
        for node in nodes:
            self.add(node)
        return self

    def add_agent(
        self,
        id: str,
        type: str,
        *,
        depends_on: Iterable[str] = (),
        inputs: Mapping[str, Any] | None = None,
        input_map: Mapping[str, str | InputBinding | tuple[str, str | None]] | None = None,
        options: Mapping[str, Any] | None = None,
        condition: Condition | None = None,
        checkpoint: bool = False,
        timeout: float | None = None,
        retry: RetryConfig | None = None,
    ) -> WorkflowGraph:
        """Builder shortcut: construct an ``AgentNode`` and add it.

        ``input_map`` values use the ``"node"`` / ``"node.key"`` string form.
        """
        return self.add(
            AgentNode(
                id=id,
                type=type,
                depends_on=frozenset(depends_on),
                static_inputs=inputs or {},
                input_bindings={k: InputBinding.parse(v) for k, v in (input_map or {}).items()},
                condition=condition,
                checkpoint=checkpoint,
                timeout=timeout,
                retry=retry,
                options=options or {},
            )
        )

    def __iadd__(self, other: AgentNode | list[AgentNode]) -> WorkflowGraph:
        if isinstance(other, list):
            return self.add_many(*other)
        return self.add(other)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_dependencies(self, node_id: str) -> frozenset[str]:
        """Get the dependencies (parents) of a node."""
        if node_id not in self._nodes:
            raise KeyError(f"Node '{node_id}' not found in workflow")
        return self._nodes[node_id].depends_on

    def get_dependents(self, node_id: str) -> set[str]:
        """Get the nodes that directly depend on ``node_id``."""
        if node_id not in self._nodes:
            raise KeyError(f"Node '{node_id}' not found in workflow")
        return {n.id for n in self._nodes.values() if node_id in n.depends_on}

    def _forward_edges(self) -> dict[str, set[str]]:
        forward: dict[str, set[str]] = {node_id: set() for node_id in self._nodes}
        for node in self._nodes.values():
            for dep in node.depends_on:
                if dep in forward:
                    forward[dep].add(node.id)
        return forward

    def _ancestors(self, node_id: str) -> set[str]:
        """Transitive dependencies of a node (existing nodes only, acyclic graph)."""
        seen: set[str] = set()
        stack = [d for d in self._nodes[node_id].depends_on if d in self._nodes]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(d for d in self._nodes[current].depends_on if d in self._nodes)
        return seen

    # ------------------------------------------------------------------
    # Validation & layering
    # ------------------------------------------------------------------

    @staticmethod
    def detect_cycle(graph: Mapping[str, set[str] | frozenset[str]]) -> str | None:
        """Detect cycles in a dependency mapping using three-colour DFS.

        Parameters
        ----------
        graph : Mapping[str, set[str] | frozenset[str]]
            Node id -> ids it depends on

        Returns
        -------
        str | None
            Cycle description if found, None otherwise

        Examples
        --------
        >>> WorkflowGraph.detect_cycle({"a": {"b"}, "b": {"c"}, "c": {"a"}})
        'Cycle detected: a -> b -> c -> a'
        >>> WorkflowGraph.detect_cycle({"a": {"b"}, "b": set()}) is None
        True
        """
        colors = dict.fromkeys(graph, Color.WHITE)

        def dfs(node: str, path: list[str]) -> str | None:
            if colors[node] == Color.GRAY:
                cycle = path[path.index(node) :] + [node]
                return f"Cycle detected: {' -> '.join(cycle)}"
            if colors[node] == Color.BLACK:
                return None

            colors[node] = Color.GRAY
            path.append(node)
            for dep in sorted(graph.get(node, _EMPTY_SET)):
                if dep in colors and (result := dfs(dep, path)):
                    return result
            path.pop()
            colors[node] = Color.BLACK
            return None

        for node in sorted(graph):
            if colors[node] == Color.WHITE and (result := dfs(node, [])):
                return result
        return None

    def _compute_layers(self) -> tuple[list[list[str]], list[str]]:
        """Layered Kahn's algorithm over ``depends_on`` edges between existing nodes.

        Returns the layers found and the ids left over (non-empty only when the
        graph has a cycle).
        """
        forward = self._forward_edges()
        in_degrees = {
            node_id: sum(1 for d in node.depends_on if d in self._nodes)
            for node_id, node in self._nodes.items()
        }
        layers: list[list[str]] = []

        while in_degrees:
            current = sorted(node_id for node_id, degree in in_degrees.items() if degree == 0)
            if not current:
                return layers, sorted(in_degrees)

            layers.append(current)
            for node_id in current:
                del in_degrees[node_id]
                for dependent in forward[node_id]:
                    if dependent in in_degrees:
                        in_degrees[dependent] -= 1

        return layers, []

    def _cycle_message(self, remaining: list[str]) -> str:
        subgraph = {
            node_id: frozenset(d for d in self._nodes[node_id].depends_on if d in remaining)
            for node_id in remaining
        }
        detail = self.detect_cycle(subgraph)
        return f"Circular dependency detected in workflow ({detail or ', '.join(remaining)})"

    def validation_errors(self) -> list[str]:
        """Collect every structural problem in the graph.

        Checks for:
        - Dependencies on unknown nodes
        - Bindings to unknown nodes
        - Cycles among ``depends_on`` edges
        - Bindings to nodes that are not upstream of the binding node

        Returns
        -------
        list[str]
            One message per problem; empty when the graph is valid
        """
        errors: list[str] = []

        for node_id, node in self._nodes.items():
            for dep in sorted(node.depends_on):
                if dep not in self._nodes:
                    errors.append(f"Agent '{node_id}' depends on unknown agent '{dep}'")
            for input_key, binding in sorted(node.input_bindings.items()):
                if binding.source not in self._nodes:
                    errors.append(
                        f"Agent '{node_id}' binds input '{input_key}' to unknown agent "
                        f"'{binding.source}'"
                    )

        _, remaining = self._compute_layers()
        if remaining:
            errors.append(self._cycle_message(remaining))
            return errors

        for node_id, node in self._nodes.items():
            ancestors: set[str] | None = None
            for input_key, binding in sorted(node.input_bindings.items()):
                if binding.source not in self._nodes:
                    continue
                if ancestors is None:
                    ancestors = self._ancestors(node_id)
                if binding.source not in ancestors:
                    errors.append(
                        f"Agent '{node_id}' binds input '{input_key}' to '{binding.source}' "
                        f"which is not one of its upstream dependencies"
                    )

        return errors

    def validate(self) -> None:
        """Validate the graph and seal it.

        Raises
        ------
        ValidationError
            With ``errors`` listing every problem found.
        """
        if self._sealed:
            return
        if errors := self.validation_errors():
            raise ValidationError(f"Invalid workflow definition '{self.id}'", errors=errors)
        self._sealed = True

    def layers(self) -> list[list[str]]:
        """Compute execution layers.

        Each layer is a sorted list of node ids with no dependency relation among
        them; every node's dependencies lie in strictly earlier layers.

        Raises
        ------
        ValidationError
            If the graph contains a cycle.

        Examples
        --------
        For A -> B, A -> C, B -> D, C -> D the result is
        ``[["A"], ["B", "C"], ["D"]]``.
        """
        if self._layers_cache is not None:
            return [list(layer) for layer in self._layers_cache]

        layers, remaining = self._compute_layers()
        if remaining:
            raise ValidationError(
                f"Invalid workflow definition '{self.id}'",
                errors=[self._cycle_message(remaining)],
            )

        if self._sealed:
            self._layers_cache = layers
        return [list(layer) for layer in layers]

    def layer_index(self, node_id: str) -> int:
        """Index of the layer that contains ``node_id``."""
        for index, layer in enumerate(self.layers()):
            if node_id in layer:
                return index
        raise KeyError(f"Node '{node_id}' not found in workflow")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the plain-data workflow form (conditions are dropped)."""
        from agentdag.kernel.domain.serialization import graph_to_dict  # noqa: PLC0415

        return graph_to_dict(self)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        conditions: Mapping[str, Condition] | None = None,
    ) -> WorkflowGraph:
        """Rebuild a graph from its plain-data form.

        Parameters
        ----------
        data : Mapping[str, Any]
            Output of ``to_dict()`` or an equivalent YAML/JSON document
        conditions : Mapping[str, Condition] | None
            Predicates to re-attach by node id, since they are not serializable
        """
        from agentdag.kernel.domain.serialization import graph_from_dict  # noqa: PLC0415

        return graph_from_dict(data, conditions)

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"WorkflowGraph(id={self.id!r}, nodes={sorted(self._nodes)!r})"

    def __str__(self) -> str:
        if not self._nodes:
            return f"WorkflowGraph '{self.id}' (empty)"
        names = sorted(self._nodes)
        shown = ", ".join(names[:5]) + (", ..." if len(names) > 5 else "")
        return f"WorkflowGraph '{self.id}' ({len(names)} nodes: {shown})"

    def __len__(self) -> int:
        return len(self._nodes)

    def __bool__(self) -> bool:
        return bool(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[AgentNode]:
        return iter(self._nodes.values())

    def keys(self) -> KeysView[str]:
        return self._nodes.keys()

    def values(self) -> ValuesView[AgentNode]:
        return self._nodes.values()

    def items(self) -> ItemsView[str, AgentNode]:
        return self._nodes.items()
