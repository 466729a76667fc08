"""Structured logging for the driver.

Events go to stderr so stdout stays free for whatever the orchestrator reads
from the driver (URLs, ssh argv). Output is JSON or console. Credential values
never reach the output: known secret keys are masked before rendering.

Usage:
    from clc_machine.config import Settings

    Settings().configure_logging()

or directly:

    from clc_machine.logging_config import setup_logging, get_logger

    setup_logging(log_format="json", log_level="DEBUG")
    logger = get_logger(__name__)
    logger.info("server_created", server_id="CA1ACMEDEMO01")
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from .constants import DRIVER_NAME

REDACTED = "***"
SECRET_KEYS = frozenset({"password", "bearer_token", "authorization", "credentials"})


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask credential values passed as event fields."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=False)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        service_name: Bound to every event as ``service``. Falls back to
                     SERVICE_NAME, then to the driver name.
        log_format: "json" or "console". Falls back to LOG_FORMAT, then "console".
        log_level: Falls back to LOG_LEVEL, then "INFO".
    """
    service_name = service_name or os.getenv("SERVICE_NAME", DRIVER_NAME)
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        # service and machine_name
        structlog.contextvars.merge_contextvars,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)
    structlog.get_logger().debug("logging_initialized", log_format=log_format, log_level=log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
