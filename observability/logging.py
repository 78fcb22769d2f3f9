"""
SCRIPTORIUM - Structured Logging with Trace Context

Integrates structlog with OpenTelemetry trace context propagation, so every
log line emitted while a self-check plan runs can be correlated with the
plan's span.

Features:
- Structured JSON or console logging
- Automatic trace context injection (trace_id, span_id)
- Context binding (plan_id, step key) through contextvars

Usage:
    from observability.logging import setup_logging, get_logger

    # Setup at startup
    setup_logging()

    # Get logger
    logger = get_logger(__name__)
    logger.info("versification_applied", table_id="kjv-lxx", lost_elements=0)
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace
from structlog.types import EventDict, WrappedLogger

from config import LoggingConfig, get_config

# Global state
_configured: bool = False


def add_trace_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """
    Structlog processor that adds OpenTelemetry trace context to log events.
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        if ctx.is_valid:
            event_dict["trace_id"] = format(ctx.trace_id, "032x")
            event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def add_service_context(
    service_name: str,
    service_version: str,
) -> structlog.types.Processor:
    """
    Create a processor that adds service context to all log events.

    Args:
        service_name: Name of the service
        service_version: Version string reported alongside it
    """

    def processor(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["service"] = service_name
        event_dict["version"] = service_version
        return event_dict

    return processor


def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(config: Optional[LoggingConfig] = None, force: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        config: Logging configuration. Uses get_config().logging if not provided.
        force: Reconfigure even if logging was already set up
    """
    global _configured

    if _configured and not force:
        return

    config = config or get_config().logging

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context(config.service_name, config.service_version),
        add_timestamp,
        add_trace_context,
    ]

    if config.include_caller:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    processors.extend(
        [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]
    )

    if config.json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_stdlib_logging(config)

    _configured = True


def _configure_stdlib_logging(config: LoggingConfig) -> None:
    """Route stdlib logging (which structlog writes through) to stderr and an optional file."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers.append(console_handler)

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger("opentelemetry").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Logger name, typically __name__

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("plan_started", plan_id="identity-bytes")
    """
    if not _configured:
        setup_logging()

    return structlog.get_logger(name)


def shutdown_logging() -> None:
    """Flush and close handlers."""
    global _configured

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.flush()
        handler.close()

    _configured = False


class LogContext:
    """
    Context manager for adding contextual information to all logs.

    Example:
        >>> with LogContext(plan_id="identity-bytes"):
        ...     logger.info("step_started", key="exported")
        ...     # All logs will include plan_id
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables to all subsequent log messages."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class PlanLogger:
    """Logger specialized for self-check plan execution."""

    def __init__(self):
        self._logger = get_logger("scriptorium.selfcheck")

    def start_plan(self, plan_id: str, step_count: int, check_count: int) -> None:
        self._logger.info(
            "Plan started",
            plan_id=plan_id,
            step_count=step_count,
            check_count=check_count,
            component="selfcheck",
        )

    def end_plan(self, plan_id: str, status: str, duration: float) -> None:
        self._logger.info(
            "Plan completed",
            plan_id=plan_id,
            status=status,
            duration_seconds=duration,
            component="selfcheck",
        )

    def fail_plan(self, plan_id: str, phase: str, error: Dict[str, Any]) -> None:
        self._logger.error(
            "Plan aborted",
            plan_id=plan_id,
            phase=phase,
            error_code=error.get("error_code"),
            error=error.get("message"),
            context=error.get("context"),
            component="selfcheck",
        )

    def step(self, step_type: str, key: str, path: str) -> None:
        self._logger.debug(
            "Step completed",
            step_type=step_type,
            key=key,
            path=path,
            component="step",
        )

    def check(self, check_type: str, passed: bool) -> None:
        self._logger.info(
            "Check completed",
            check_type=check_type,
            passed=passed,
            component="check",
        )

    def fallback(self, step_type: str, key: str, reason: str) -> None:
        self._logger.warning(
            "Plugin fallback used",
            step_type=step_type,
            key=key,
            reason=reason,
            component="step",
        )
