"""Structlog setup for the ``service_errors`` loggers.

The registry logs declarations and sealing, the HTTP handlers log every
declared error they answer. Both write through get_logger(), as JSON lines by
default or as colored console output when LOG_FORMAT=console.
"""

import logging
import logging.config
import sys
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from structlog.stdlib import BoundLogger

type LogFormat = Literal["json", "console"]


def _utc_timestamp(
    _logger: object,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


class LoggingSettings(BaseSettings):
    """LOG_LEVEL and LOG_FORMAT, from the environment or .env."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: LogFormat = Field(default="json", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


def _renderer(log_format: LogFormat) -> Any:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(settings: LoggingSettings) -> None:
    """Route the ``service_errors`` loggers to stdout through structlog.

    Applied on import with settings from the environment. Other loggers are
    left to the host application.
    """
    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _utc_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processor": _renderer(settings.log_format),
                    "foreign_pre_chain": shared,
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": sys.stdout,
                },
            },
            "loggers": {
                "service_errors": {
                    "handlers": ["stdout"],
                    "level": settings.log_level,
                    "propagate": False,
                },
            },
        }
    )


configure_logging(LoggingSettings())


def get_logger(name: str) -> BoundLogger:
    """Logger for a module of this package, e.g. ``get_logger(__name__)``.

    Events are snake_case with their context as keywords::

        logger.debug("error_declared", error="ImageService_ImageNotFoundError", status=404)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
