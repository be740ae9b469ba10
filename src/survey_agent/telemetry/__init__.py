"""Telemetry: structlog logging, semantic event names, and trace context."""

from survey_agent.telemetry import events
from survey_agent.telemetry.logger import configure_logging, get_logger
from survey_agent.telemetry.trace import TraceContext

__all__ = [
    "TraceContext",
    "configure_logging",
    "events",
    "get_logger",
]
