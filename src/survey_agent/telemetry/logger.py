"""Structured logging configuration using structlog.

Events are routed through the standard library root logger so that
third-party libraries (SQLAlchemy, httpx, anthropic) share the same handlers:
a rotating JSONL file for machine consumption and a console handler for
humans.
"""

import logging
import logging.handlers
import pathlib
import sys
from typing import Any

import structlog


def _get_log_level() -> str:
    # Settings import logs, so the level is bootstrapped from the environment.
    from survey_agent.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_dir() -> pathlib.Path:
    from survey_agent.config.validators import resolve_path  # noqa: PLC0415

    return resolve_path("telemetry/logs")


def _add_component(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add the last segment of the logger name as ``component``.

    ``survey_agent.approvals.service`` becomes ``service``; events from
    foreign loggers without a name are tagged ``unknown``.
    """
    logger_name = event_dict.get("logger") or getattr(logger, "name", None) or "unknown"
    event_dict["component"] = logger_name.rsplit(".", 1)[-1]
    return event_dict


def _shared_processors() -> list[Any]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_component,
    ]


def _configure_file_handler(log_dir: pathlib.Path) -> logging.Handler:
    """Rotating JSONL handler at ``<log_dir>/current.jsonl``."""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / "current.jsonl"),
        maxBytes=50 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_shared_processors(),
        )
    )
    return handler


def _configure_console_handler(json_output: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_shared_processors(),
        )
    )
    return handler


def configure_logging(
    log_level: str | None = None,
    log_dir: pathlib.Path | None = None,
    *,
    json_console: bool = False,
    file_output: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Call once at startup. ``get_logger`` calls it lazily with defaults if
    nothing has configured logging yet.

    Args:
        log_level: Console level; defaults to ``APP_LOG_LEVEL``.
        log_dir: Directory for the JSONL file; defaults to ``telemetry/logs``.
        json_console: Render console output as JSON instead of pretty text.
        file_output: Whether to attach the rotating file handler.
    """
    level_name = log_level or _get_log_level()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    for noisy in ("sqlalchemy.engine", "httpx", "httpcore", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if file_output:
        file_handler = _configure_file_handler(log_dir or _get_log_dir())
        file_handler.setLevel(logging.INFO)
        root_logger.addHandler(file_handler)

    console_handler = _configure_console_handler(json_console)
    console_handler.setLevel(getattr(logging, level_name, logging.INFO))
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger.

    Example:
        >>> from survey_agent.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("task_started", task_id="123", trace_id="abc")
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)
