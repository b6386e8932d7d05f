"""
Structured logging configuration using structlog
JSON logs by default, human-readable console output for local runs
"""
import logging
import structlog
from typing import Any

from . import __version__

APP_NAME = "satisfactory-exporter"


def add_app_context(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add application-level context to all log entries"""
    event_dict['app'] = APP_NAME
    event_dict['version'] = __version__
    return event_dict


def drop_color_message_key(logger: Any, method_name: str, event_dict: dict) -> dict:
    """
    Remove the 'color_message' key uvicorn adds to its access log records.
    """
    event_dict.pop('color_message', None)
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure structured logging for the exporter

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON logs. If False, use human-readable format

    Returns:
        Configured structlog logger

    Usage:
        logger = configure_logging("INFO")
        logger.info("upstream_fetch_failed", error_type="transport", error="timed out")
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_app_context,
        drop_color_message_key,
    ]

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level] + shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib records (uvicorn, httpx) through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level.upper())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, root_logger.level))

    return structlog.get_logger()
