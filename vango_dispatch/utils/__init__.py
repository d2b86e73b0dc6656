"""Utility modules."""

from vango_dispatch.utils.logging import LifecycleLogger, get_logger, setup_logging
from vango_dispatch.utils.tracing import DispatchTracer

__all__ = ["setup_logging", "get_logger", "LifecycleLogger", "DispatchTracer"]
