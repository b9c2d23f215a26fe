"""Configuration loader for agentdag.

Reads TOML configuration into the models of ``agentdag.kernel.config.models``.
Two sources are supported:

1. A standalone ``agentdag.toml`` (flat, or with a ``[tool.agentdag]`` table)
2. ``pyproject.toml [tool.agentdag]`` (auto-discovery fallback)
"""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, cast

from agentdag.kernel.config.models import AgentDAGConfig, BudgetConfig, LoggingConfig
from agentdag.kernel.exceptions import ConfigurationError
from agentdag.kernel.logging import get_logger
from agentdag.kernel.orchestration.models import (
    DEFAULT_AGENT_TIMEOUT,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RETRY,
    OrchestratorConfig,
)
from agentdag.kernel.validation.retry import RetryConfig

# Constants for boolean environment variable parsing
_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

CONFIG_FILENAME = "agentdag.toml"

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def _as_float(section: str, key: str, value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(section, f"'{key}' must be a number, got {value!r}") from None


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str) -> AgentDAGConfig:
    """Cached configuration loader."""
    return ConfigLoader()._load_and_parse(Path(path_str))


class ConfigLoader:
    """Loads and processes agentdag configuration files.

    Values of the form ``${VAR}`` or ``${VAR:default}`` are replaced by
    environment variables; ``AGENTDAG_LOG_*`` variables override the logging
    section.
    """

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

    def load_config_file(self, path: str | Path | None = None) -> AgentDAGConfig:
        """Load configuration from a TOML file.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        """
        config_path = self._find_config_file(path)
        return _load_and_parse_cached(str(config_path.absolute()))

    def _load_and_parse(self, config_path: Path) -> AgentDAGConfig:
        logger.debug("Loading configuration from {path}", path=config_path)
        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(str(config_path), f"invalid TOML: {e}") from e

        section = data.get("tool", {}).get("agentdag")
        if section is None:
            if config_path.name == "pyproject.toml":
                logger.warning("No [tool.agentdag] section found in pyproject.toml, using defaults")
                return get_default_config()
            section = data

        return self._parse_config(self._substitute_env_vars(section))

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``AGENTDAG_CONFIG_PATH`` env var
        3. ``agentdag.toml`` in CWD
        4. ``pyproject.toml`` with ``[tool.agentdag]`` in CWD or a parent directory
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv("AGENTDAG_CONFIG_PATH"):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from AGENTDAG_CONFIG_PATH: {path}", path=config_path)
                return config_path
            logger.warning(
                "AGENTDAG_CONFIG_PATH set but file not found: {path}", path=config_path
            )

        if Path(CONFIG_FILENAME).exists():
            return Path(CONFIG_FILENAME)

        current = Path.cwd()
        while True:
            pyproject = current / "pyproject.toml"
            if pyproject.exists():
                with pyproject.open("rb") as f:
                    data = tomllib.load(f)
                if "agentdag" in data.get("tool", {}):
                    return pyproject
            if current == current.parent:
                break
            current = current.parent

        raise FileNotFoundError(
            f"No configuration file found. Provide a path, set AGENTDAG_CONFIG_PATH, "
            f"create {CONFIG_FILENAME} or add [tool.agentdag] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ``${VAR}`` / ``${VAR:default}`` in strings.

        Unset variables without a default keep their placeholder.
        """
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name, default = match.group(1), match.group(2)
                value = os.environ.get(var_name)
                if value is not None:
                    return value
                if default is not None:
                    return default
                logger.debug(
                    "Environment variable {var_name} not found, keeping placeholder",
                    var_name=var_name,
                )
                return match.group(0)

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> AgentDAGConfig:
        """Parse configuration data into AgentDAGConfig."""
        modules = data.get("modules", [])
        if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
            raise ConfigurationError("modules", "must be a list of module paths")
        if modules:
            logger.debug("Loaded {count} agent modules", count=len(modules))

        budget = BudgetConfig()
        if budget_data := data.get("budget"):
            budget = BudgetConfig(
                limit=_as_float("budget", "limit", budget_data.get("limit")),
                alert_threshold=_as_float(
                    "budget", "alert_threshold", budget_data.get("alert_threshold", 0.8)
                )
                or 0.8,
            )

        return AgentDAGConfig(
            modules=tuple(modules),
            logging=self._parse_logging_config(data.get("logging", {})),
            orchestrator=self._parse_orchestrator_config(data.get("orchestrator", {})),
            budget=budget,
            settings=MappingProxyType(dict(data.get("settings", {}))),
        )

    def _parse_orchestrator_config(self, data: dict[str, Any]) -> OrchestratorConfig:
        if not data:
            return OrchestratorConfig()

        retry = DEFAULT_RETRY
        if retry_data := data.get("retry"):
            try:
                retry = RetryConfig.from_dict(dict(retry_data))
            except TypeError as e:
                raise ConfigurationError("orchestrator.retry", str(e)) from e

        timeout = data.get("default_timeout", DEFAULT_AGENT_TIMEOUT)
        return OrchestratorConfig(
            max_concurrency=int(data.get("max_concurrency", DEFAULT_MAX_CONCURRENCY)),
            default_timeout=_as_float("orchestrator", "default_timeout", timeout),
            default_retry=retry,
            strict_validation=bool(data.get("strict_validation", True)),
        )

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration with environment variable overrides.

        Environment variables take precedence over config file values:
        - AGENTDAG_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - AGENTDAG_LOG_FORMAT: Output format (console, json, structured, rich)
        - AGENTDAG_LOG_FILE: Optional file path for log output
        - AGENTDAG_LOG_COLOR: Use color output (true/false)
        """
        level = logging_data.get("level", "INFO")
        format_type = logging_data.get("format", "structured")
        output_file = logging_data.get("output_file")
        use_color = logging_data.get("use_color", True)
        include_timestamp = logging_data.get("include_timestamp", True)
        backtrace = logging_data.get("backtrace", True)
        diagnose = logging_data.get("diagnose", False)

        if env_level := os.getenv("AGENTDAG_LOG_LEVEL"):
            level = env_level.upper()
            logger.debug("Overriding log level from env: {level}", level=level)

        if env_format := os.getenv("AGENTDAG_LOG_FORMAT"):
            format_type = env_format.lower()
            logger.debug("Overriding log format from env: {format}", format=format_type)

        if env_file := os.getenv("AGENTDAG_LOG_FILE"):
            output_file = env_file

        if env_color := os.getenv("AGENTDAG_LOG_COLOR"):
            try:
                use_color = _parse_bool_env(env_color)
            except ValueError as e:
                logger.warning("Invalid AGENTDAG_LOG_COLOR value: {error}", error=e)

        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError("logging", f"unknown level {level!r}")
        if format_type not in ("console", "json", "structured", "rich"):
            raise ConfigurationError("logging", f"unknown format {format_type!r}")

        return LoggingConfig(
            level=cast("Any", level),
            format=cast("Any", format_type),
            output_file=output_file,
            use_color=bool(use_color),
            include_timestamp=bool(include_timestamp),
            backtrace=bool(backtrace),
            diagnose=bool(diagnose),
        )


def load_config(path: str | Path | None = None) -> AgentDAGConfig:
    """Load configuration from file or return defaults.

    An explicit ``path`` that does not exist is an error; when searching,
    a missing file means defaults.
    """
    loader = ConfigLoader()
    try:
        return loader.load_config_file(path)
    except FileNotFoundError:
        if path:
            raise
        logger.debug("No configuration file found, using defaults")
        return get_default_config()


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when configuration files have been modified.
    """
    _load_and_parse_cached.cache_clear()


def get_default_config() -> AgentDAGConfig:
    """Default configuration: no extra modules, default logging and orchestrator."""
    return AgentDAGConfig()
