"""
Observability module - Logging, Metrics, and Tracing.
"""

from videarn.observability.logging import get_logger, log_context, setup_logging
from videarn.observability.metrics import metrics
from videarn.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
