"""
Structured logging setup.

Connectors log through ``structlog.get_logger()`` with event-style keys.
Applications call ``configure_logging`` once at startup; libraries never
configure logging themselves.
"""

import logging

import structlog

_LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def configure_logging(level: str | int = "info", json_output: bool = False) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level name (``debug`` ... ``critical``) or number.
        json_output: Render JSON lines instead of the console format.
    """
    if isinstance(level, str):
        numeric_level = _LOG_LEVEL_MAP.get(level.lower(), logging.INFO)
    else:
        numeric_level = level

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
