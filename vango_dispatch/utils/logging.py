"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from vango_dispatch.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Configure standard library logging
    log_level = getattr(logging, settings.log_level)

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LifecycleLogger:
    """Specialized logger for delivery lifecycle and matching activity."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_transition(
        self,
        delivery_id: str,
        action: str,
        from_status: str,
        to_status: str,
        actor_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a successful status transition."""
        self.logger.info(
            "delivery_transition",
            component=self.component,
            delivery_id=delivery_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            **kwargs,
        )

    def log_rejected(
        self,
        delivery_id: str,
        action: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Log a transition attempt that was refused."""
        self.logger.warning(
            "delivery_transition_rejected",
            component=self.component,
            delivery_id=delivery_id,
            action=action,
            reason=reason,
            **kwargs,
        )

    def log_match(
        self,
        candidates: int,
        matched: int,
        duration_ms: float,
        **kwargs: Any,
    ) -> None:
        """Log the outcome of ranking a driver pool."""
        log_data = {
            "component": self.component,
            "candidates": candidates,
            "matched": matched,
            "duration_ms": duration_ms,
        }
        log_data.update(kwargs)
        self.logger.info("drivers_ranked", **log_data)

    def log_error(
        self,
        error: str,
        delivery_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log an error."""
        self.logger.error(
            "dispatch_error",
            component=self.component,
            delivery_id=delivery_id,
            error=error,
            **kwargs,
        )
