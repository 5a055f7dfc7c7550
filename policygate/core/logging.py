"""
Structured logging configuration using structlog.
"""
import logging
import sys
from typing import Any, Dict

import structlog

from policygate.core.config import settings


def setup_logging() -> None:
    """
    Configure structured logging for the application.
    """
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Processors for development
    dev_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ]

    # Processors for production
    prod_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    processors = dev_processors if settings.is_development else prod_processors

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually __name__ of the module)

    Returns:
        Configured logger instance
    """
    return structlog.get_logger(name)


def log_request_details(
    request_id: str,
    method: str,
    path: str,
    organization_id: str | None = None,
) -> Dict[str, Any]:
    """
    Create a context dict for request logging.
    """
    context = {
        "request_id": request_id,
        "method": method,
        "path": path,
    }

    if organization_id:
        context["organization_id"] = organization_id

    return context


def log_error_details(
    error: Exception,
    **kwargs: Any,
) -> Dict[str, Any]:
    """
    Create a context dict for error logging.

    Args:
        error: Exception instance
        **kwargs: Additional context

    Returns:
        Context dictionary for logging
    """
    context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **kwargs,
    }

    error_code = getattr(error, "error_code", None)
    if error_code:
        context["error_code"] = error_code

    return context


def log_decision_details(result: Any) -> Dict[str, Any]:
    """
    Create a context dict for an authorization decision.

    Args:
        result: AuthorizationResult

    Returns:
        Context dictionary for logging
    """
    context = {
        "user_id": result.user_id,
        "organization_id": result.organization_id,
        "action": result.action,
        "resource": result.resource,
        "decision": result.decision.value,
        "policies": [s.policy_id for s in result.matched],
    }

    if result.error_code:
        context["error_code"] = result.error_code

    return context
