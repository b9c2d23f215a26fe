"""Tests for the plain-data workflow form."""

import pytest

from agentdag.kernel.domain.dag import InputBinding, WorkflowGraph
from agentdag.kernel.exceptions import ValidationError
from agentdag.kernel.validation.retry import RetryConfig


@pytest.fixture
def graph() -> WorkflowGraph:
    return (
        WorkflowGraph(
            "brief",
            "Research brief",
            description="Research then draft",
            default_timeout=30.0,
            default_retry=RetryConfig(max_retries=2, delay=0.5),
            metadata={"owner": "research-team"},
        )
        .add_agent("research", "echo", inputs={"topic": "agents"}, options={"model": "small"})
        .add_agent(
            "draft",
            "format",
            depends_on=["research"],
            inputs={"template": "On {topic}"},
            input_map={"topic": "research.topic"},
            checkpoint=True,
            timeout=10.0,
            retry=RetryConfig(max_retries=3),
        )
    )


class TestGraphToDict:
    def test_document_shape(self, graph):
        data = graph.to_dict()

        assert data["id"] == "brief"
        assert data["defaults"] == {
            "timeout": 30.0,
            "retry": RetryConfig(max_retries=2, delay=0.5).to_dict(),
        }
        draft = data["agents"]["draft"]
        assert draft["dependsOn"] == ["research"]
        assert draft["inputMap"] == {"topic": "research.topic"}
        assert draft["checkpoint"] is True

    def test_round_trip(self, graph):
        rebuilt = WorkflowGraph.from_dict(graph.to_dict())

        assert rebuilt.to_dict() == graph.to_dict()
        assert rebuilt.nodes["draft"].input_bindings["topic"] == InputBinding("research", "topic")
        assert rebuilt.nodes["draft"].retry == RetryConfig(max_retries=3)
        assert rebuilt.default_retry == RetryConfig(max_retries=2, delay=0.5)
        assert rebuilt.layers() == [["research"], ["draft"]]


class TestGraphFromDict:
    def test_snake_case_keys(self):
        graph = WorkflowGraph.from_dict({
            "id": "wf",
            "agents": {
                "a": {"type": "echo"},
                "b": {"type": "echo", "depends_on": ["a"], "input_map": {"x": "a"}},
            },
        })
        assert graph.nodes["b"].depends_on == {"a"}
        assert graph.name == "wf"

    def test_conditions_reattached(self):
        def never(ctx):
            return False

        graph = WorkflowGraph.from_dict(
            {"id": "wf", "agents": {"a": {"type": "echo"}}}, conditions={"a": never}
        )
        assert graph.nodes["a"].condition is never

    def test_condition_for_unknown_agent(self):
        with pytest.raises(ValidationError, match="unknown agents"):
            WorkflowGraph.from_dict(
                {"id": "wf", "agents": {"a": {"type": "echo"}}},
                conditions={"b": lambda ctx: True},
            )

    def test_invalid_document_lists_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            WorkflowGraph.from_dict({"id": "wf", "agents": {"a": {"dependsOn": []}}})
        assert any(e.startswith("agents.a.type") for e in exc_info.value.errors)

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowGraph.from_dict({"id": "wf", "agents": {"a": {"type": "echo", "x": 1}}})
