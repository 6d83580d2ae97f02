"""Logging for the finiate command line.

stdout carries command output (tables, confirmations, --json documents), so
every log line goes to stderr. The default level is WARNING: a normal command
prints nothing but its result, while retries, timeouts, partial writes and
corruption still surface. `--json-logs` (or FINIATE_JSON_LOGS) switches to one
JSON object per line for piping into other tools.

structlog events and stdlib records (SQLAlchemy, aiosqlite) share one
renderer through ProcessorFormatter. Each invocation binds a `command_id`
contextvar, so all events of one command can be grouped.
"""

import logging
import logging.config
import sys

import structlog

# Chatty libraries stay at WARNING unless the whole CLI runs at DEBUG
_LIBRARY_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def configure_structlog(log_level: str = "WARNING", json_logs: bool = False) -> None:
    """Route structlog and stdlib logging to stderr for one CLI invocation.

    Safe to call once per command; each call replaces the previous handlers.

    Args:
        log_level: Root log level ("DEBUG", "INFO", "WARNING", "ERROR")
        json_logs: True for JSON lines, False for the console renderer
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    library_level = "DEBUG" if log_level.upper() == "DEBUG" else "WARNING"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "cli": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "cli",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"handlers": ["stderr"], "level": log_level.upper()},
        "loggers": {name: {"level": library_level} for name in _LIBRARY_LOGGERS},
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
