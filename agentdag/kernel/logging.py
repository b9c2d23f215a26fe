"""Centralized logging configuration for agentdag using Loguru.

Provides consistent logging across the framework with support for:
- Multiple output formats (console, JSON, structured, rich)
- Environment-based configuration
- Run-scoped correlation IDs
- Idempotent configuration

Examples
--------
Basic usage:

>>> from agentdag.kernel.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.info("Workflow started", workflow_id="research")

Configure logging globally::

    from agentdag.kernel.logging import configure_logging
    configure_logging(level="DEBUG", format="json")
"""

import contextvars
import os
import sys
from contextlib import suppress
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger
from rich.logging import RichHandler

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json", "structured", "rich"]

_CURRENT_CONFIG: dict | None = None
_HANDLER_IDS: list[int] = []

# Correlation ID context variable, set to the run id during execution
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="-")


def _inject_correlation_id(record: dict) -> None:
    record["extra"].setdefault("cid", correlation_id.get())


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    use_color: bool = True,
    include_timestamp: bool = True,
    force_reconfigure: bool = False,
    backtrace: bool = True,
    diagnose: bool = False,
) -> None:
    """Configure global logging for agentdag.

    Calling it again with the same configuration is a no-op.

    Parameters
    ----------
    level : LogLevel, default="INFO"
        Minimum log level to output
    format : LogFormat, default="structured"
        Output format:
        - "console": plain single-line output
        - "json": serialized records for log aggregation
        - "structured": coloured structured format (Loguru native)
        - "rich": Rich console handler
    output_file : str | Path | None, default=None
        Optional file path; file output is always JSON
    use_color : bool, default=True
        Use ANSI colours in structured format (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    force_reconfigure : bool, default=False
        Reconfigure even if the configuration is unchanged
    backtrace : bool, default=True
        Extended tracebacks
    diagnose : bool, default=False
        Show variable values in tracebacks (leaks data; keep off in production)
    """
    global _CURRENT_CONFIG

    current_config = {
        "level": level,
        "format": format,
        "output_file": str(output_file) if output_file else None,
        "use_color": use_color,
        "include_timestamp": include_timestamp,
        "backtrace": backtrace,
        "diagnose": diagnose,
    }

    if not force_reconfigure and current_config == _CURRENT_CONFIG:
        return

    if _CURRENT_CONFIG is None:
        # loguru's default stderr handler would duplicate every record
        with suppress(ValueError):
            logger.remove(0)

    # Remove only our own handlers so pytest and host applications keep theirs
    for handler_id in _HANDLER_IDS:
        with suppress(ValueError):
            logger.remove(handler_id)
    _HANDLER_IDS.clear()

    logger.configure(patcher=_inject_correlation_id)

    if format == "rich":
        rich_handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=include_timestamp,
            show_level=True,
            show_path=True,
        )
        handler_id = logger.add(
            sink=rich_handler,
            level=level,
            format="{message}",
            backtrace=backtrace,
            diagnose=diagnose,
        )
    elif format == "json":
        handler_id = logger.add(
            sink=sys.stderr,
            level=level,
            serialize=True,
            backtrace=backtrace,
            diagnose=diagnose,
        )
    elif format == "structured":
        timestamp_fmt = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> " if include_timestamp else ""
        colorize = use_color and sys.stderr.isatty()
        structured_format = (
            f"{timestamp_fmt}[<level>{{level: <8}}</level>] "
            "<magenta>{extra[cid]}</magenta> "
            "<cyan>{name}:{function}:{line}</cyan> | <level>{message}</level>"
        )
        handler_id = logger.add(
            sink=sys.stderr,
            level=level,
            format=structured_format,
            colorize=colorize,
            backtrace=backtrace,
            diagnose=diagnose,
        )
    else:  # console
        timestamp_fmt = "{time:YYYY-MM-DD HH:mm:ss} " if include_timestamp else ""
        console_format = f"{timestamp_fmt}{{level: <8}} | {{extra[cid]}} | {{name}} | {{message}}"
        handler_id = logger.add(
            sink=sys.stderr,
            level=level,
            format=console_format,
            colorize=False,
            backtrace=backtrace,
            diagnose=diagnose,
        )
    _HANDLER_IDS.append(handler_id)

    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        handler_id = logger.add(
            sink=output_path,
            level=level,
            serialize=True,
            rotation="10 MB",
            retention="1 week",
            backtrace=backtrace,
            diagnose=diagnose,
        )
        _HANDLER_IDS.append(handler_id)

    _CURRENT_CONFIG = current_config


@lru_cache(maxsize=256)
def get_logger(name: str) -> "Logger":
    """Get a logger bound to ``name`` (cached).

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__`` of the calling module

    Returns
    -------
    loguru.Logger
        Logger instance bound with the module name

    Notes
    -----
    If ``configure_logging()`` has not been called yet, logging is configured
    from ``AGENTDAG_LOG_LEVEL`` and ``AGENTDAG_LOG_FORMAT``.
    """
    _ensure_configured()
    return logger.bind(module=name)


def set_correlation_id(cid: str) -> contextvars.Token[str]:
    """Set the correlation ID for the current context.

    Returns the token so callers can restore the previous value.

    Examples
    --------
    >>> token = set_correlation_id("run-abc")
    >>> get_correlation_id()
    'run-abc'
    >>> reset_correlation_id(token)
    """
    return correlation_id.set(cid)


def reset_correlation_id(token: contextvars.Token[str]) -> None:
    """Restore the correlation ID that was active before ``set_correlation_id``."""
    correlation_id.reset(token)


def get_correlation_id() -> str:
    """Get the current correlation ID, or ``"-"`` if not set."""
    return correlation_id.get()


def _ensure_configured() -> None:
    """Ensure logging has at least a basic configuration (lazy initialization)."""
    if _CURRENT_CONFIG is None:
        level = os.getenv("AGENTDAG_LOG_LEVEL", "INFO").upper()
        format_type = os.getenv("AGENTDAG_LOG_FORMAT", "structured").lower()
        configure_logging(level=level, format=format_type)  # type: ignore[arg-type]
