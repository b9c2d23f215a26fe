"""Small shared helpers."""

from agentdag.kernel.utils.field_extractor import FieldExtractor
from agentdag.kernel.utils.node_timer import Timer

__all__ = ["FieldExtractor", "Timer"]
