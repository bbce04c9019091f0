"""structlog setup for applications embedding the writ-tracking client.

``log_format="json"`` emits one JSON object per line; anything else uses
structlog's console renderer. Workflow sessions bind ``session_id`` and
``workflow`` through structlog.contextvars, so every event emitted while
an operation runs carries them. Credentials never reach the output:
``redact_secrets`` masks them in both structlog events and foreign
(stdlib) records.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from writtrax.core.config import Settings

REDACTED = "***"
SECRET_KEYS = frozenset({"token", "api_token", "password", "x-access-token"})
QUIET_LOGGERS = ("httpx", "httpcore")


def redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask values logged under a credential key."""
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging through one stderr handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]

    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())

    # Request lines from the HTTP stack duplicate the client's own api_* events.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
