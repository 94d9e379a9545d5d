"""
Structured Logging with Structlog.

Registration logs end up in installer log files that are attached to bug
reports, so secrets are replaced before any renderer sees them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from sysreg.config import Settings, settings
from sysreg.helpers import FILTERED

# Keys whose values are never written to the log
SECRET_KEYS = frozenset({"reg_code", "regcode", "token", "password"})


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every entry with the service name and version."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.version
    return event_dict


def filter_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace registration codes, tokens and passwords."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = FILTERED
    return event_dict


def log_level(config: Settings) -> int:
    """SCCDEBUG and Y2DEBUG switch to debug output."""
    if config.sccdebug or config.y2debug:
        return logging.DEBUG
    return getattr(logging, config.log_level.upper(), logging.INFO)


def setup_logging(config: Settings | None = None) -> None:
    """
    Configure structlog on top of the standard logging module.

    Entries go to stderr. LOG_FORMAT=json renders one object per line:
    {"event": "product_registered", "level": "info", "logger": "sysreg.services.registration",
     "timestamp": "...", "service": "sysreg", "version": "0.1.0", "service_name": "SLES_12_x86_64"}
    """
    config = config or settings
    level = log_level(config)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        filter_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if level == logging.DEBUG:
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound logger for a module, use ``get_logger(__name__)``."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind context variables for the duration of a block.

        with log_context(operation="activate_product", registration_url=url):
            logger.info("registering_product", product=str(identity))
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
