"""Plain-data form of a workflow graph.

The document shape is::

    {
        "id": "...", "name": "...", "description": "...", "version": "1.0.0",
        "defaults": {"timeout": 30.0, "retry": {"max_retries": 3}},
        "agents": {
            "<node id>": {
                "type": "...", "dependsOn": [...], "inputs": {...},
                "inputMap": {"key": "node.field"}, "options": {...},
                "checkpoint": false, "timeout": null, "retry": null,
            },
        },
        "metadata": {...},
    }

``condition`` predicates are code and are never part of the document; callers
re-attach them by node id after loading.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat
from pydantic import ValidationError as PydanticValidationError

from agentdag.kernel.domain.dag import AgentNode, InputBinding, WorkflowGraph
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.validation.retry import RetryConfig

if TYPE_CHECKING:
    from agentdag.kernel.domain.dag import Condition


class RetryDocument(BaseModel):
    """Serialized ``RetryConfig``."""

    model_config = ConfigDict(extra="forbid")

    max_retries: int = Field(default=1, ge=1)
    delay: float = Field(default=1.0, ge=0)
    backoff: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=60.0, ge=0)
    jitter: float = Field(default=0.0, ge=0)

    def to_config(self) -> RetryConfig:
        return RetryConfig(**self.model_dump())


class AgentDocument(BaseModel):
    """Serialized ``AgentNode``. Accepts camelCase or snake_case keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")
    inputs: dict[str, Any] = Field(default_factory=dict)
    input_map: dict[str, str] = Field(default_factory=dict, alias="inputMap")
    options: dict[str, Any] = Field(default_factory=dict)
    checkpoint: bool = False
    timeout: PositiveFloat | None = None
    retry: RetryDocument | None = None


class WorkflowDefaults(BaseModel):
    """Workflow-level defaults that nodes may override."""

    model_config = ConfigDict(extra="forbid")

    timeout: PositiveFloat | None = None
    retry: RetryDocument | None = None


class WorkflowDocument(BaseModel):
    """Serialized ``WorkflowGraph``."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str | None = None
    description: str = ""
    version: str = "1.0.0"
    defaults: WorkflowDefaults = Field(default_factory=WorkflowDefaults)
    agents: dict[str, AgentDocument] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


def graph_to_dict(graph: WorkflowGraph) -> dict[str, Any]:
    """Serialize ``graph`` to the plain-data document form."""
    agents: dict[str, Any] = {}
    for node_id, node in graph.items():
        agents[node_id] = {
            "type": node.type,
            "dependsOn": sorted(node.depends_on),
            "inputs": dict(node.static_inputs),
            "inputMap": {key: str(binding) for key, binding in node.input_bindings.items()},
            "options": dict(node.options),
            "checkpoint": node.checkpoint,
            "timeout": node.timeout,
            "retry": node.retry.to_dict() if node.retry else None,
        }

    return {
        "id": graph.id,
        "name": graph.name,
        "description": graph.description,
        "version": graph.version,
        "defaults": {
            "timeout": graph.default_timeout,
            "retry": graph.default_retry.to_dict() if graph.default_retry else None,
        },
        "agents": agents,
        "metadata": dict(graph.metadata),
    }


def graph_from_dict(
    data: Mapping[str, Any], conditions: Mapping[str, Condition] | None = None
) -> WorkflowGraph:
    """Rebuild a graph from its document form.

    Raises
    ------
    ValidationError
        If the document does not match the schema or a condition targets an
        unknown node.
    """
    try:
        document = WorkflowDocument.model_validate(dict(data))
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError("Invalid workflow document", errors=errors) from e

    conditions = conditions or {}
    unknown = sorted(set(conditions) - set(document.agents))
    if unknown:
        raise ValidationError(
            "Conditions given for unknown agents",
            errors=[f"no agent '{node_id}' in workflow '{document.id}'" for node_id in unknown],
        )

    graph = WorkflowGraph(
        document.id,
        document.name,
        description=document.description,
        version=document.version,
        default_timeout=document.defaults.timeout,
        default_retry=document.defaults.retry.to_config() if document.defaults.retry else None,
        metadata=document.metadata,
    )
    for node_id, agent in document.agents.items():
        graph.add(
            AgentNode(
                id=node_id,
                type=agent.type,
                depends_on=frozenset(agent.depends_on),
                static_inputs=agent.inputs,
                input_bindings={k: InputBinding.parse(v) for k, v in agent.input_map.items()},
                condition=conditions.get(node_id),
                checkpoint=agent.checkpoint,
                timeout=agent.timeout,
                retry=agent.retry.to_config() if agent.retry else None,
                options=agent.options,
            )
        )
    return graph
