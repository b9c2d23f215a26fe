"""YAML workflow files.

A workflow file holds the plain-data form of a ``WorkflowGraph``::

    id: research-brief
    name: Research brief
    agents:
      research:
        type: echo
        inputs: {topic: agents}
      draft:
        type: format
        dependsOn: [research]
        inputs: {template: "Brief on {topic}"}
        inputMap: {topic: research.topic}
        checkpoint: true
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from agentdag.kernel.domain.dag import WorkflowGraph
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from agentdag.kernel.domain.dag import Condition

__all__ = ["dump_workflow", "load_workflow", "parse_workflow"]

logger = get_logger(__name__)


def parse_workflow(
    text: str, conditions: Mapping[str, Condition] | None = None, *, source: str = "<string>"
) -> WorkflowGraph:
    """Build a graph from YAML text.

    Raises
    ------
    ValidationError
        If the text is not valid YAML or not a valid workflow document.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid workflow YAML in {source}", errors=[str(e)]) from e

    if not isinstance(data, dict):
        raise ValidationError(
            f"Invalid workflow YAML in {source}",
            errors=[f"expected a mapping at top level, got {type(data).__name__}"],
        )

    graph = WorkflowGraph.from_dict(data, conditions)
    logger.debug(
        "Loaded workflow '{workflow}' ({count} agents) from {source}",
        workflow=graph.id,
        count=len(graph),
        source=source,
    )
    return graph


def load_workflow(
    path: str | Path, conditions: Mapping[str, Condition] | None = None
) -> WorkflowGraph:
    """Load a workflow from a YAML file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        return parse_workflow(f.read(), conditions, source=str(path))


def dump_workflow(graph: WorkflowGraph, path: str | Path | None = None) -> str:
    """Serialize a graph to YAML, writing it to ``path`` when given."""
    data: dict[str, Any] = graph.to_dict()
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
    return text
