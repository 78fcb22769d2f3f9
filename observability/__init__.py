"""
SCRIPTORIUM - Observability Package

Structured logging for the IR engine and the self-check executor.

Usage:
    from observability import get_logger, LogContext

    logger = get_logger(__name__)
    with LogContext(plan_id="identity-bytes"):
        logger.info("step_started")
"""
from .logging import (
    LogContext,
    PlanLogger,
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "LogContext",
    "PlanLogger",
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
]
