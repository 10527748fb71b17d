"""
Observability module - Logging, Metrics, and Tracing.
"""

from skillyme.observability.logging import get_logger, log_context, setup_logging
from skillyme.observability.metrics import metrics
from skillyme.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
