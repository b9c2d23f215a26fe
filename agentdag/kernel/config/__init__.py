"""Configuration loading for agentdag."""

from agentdag.kernel.config.loader import (
    ConfigLoader,
    clear_config_cache,
    get_default_config,
    load_config,
)
from agentdag.kernel.config.models import AgentDAGConfig, BudgetConfig, LoggingConfig

__all__ = [
    "AgentDAGConfig",
    "BudgetConfig",
    "ConfigLoader",
    "LoggingConfig",
    "clear_config_cache",
    "get_default_config",
    "load_config",
]
