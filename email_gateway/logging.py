"""Gateway logging: structlog events and stdlib records share one stdout stream.

Every line passes through :func:`redact_secrets`, including records that
uvicorn emits through the stdlib ``logging`` module, so a mailbox password
or the gateway API key never reaches the output even when a caller slips
one into a log call.
"""

from __future__ import annotations

import logging
import sys

import structlog

REDACTED_KEYS = frozenset({"password", "secret", "api_key", "authorization", "x-api-key"})
REDACTED = "***"

# Loggers that install their own handlers at startup.
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def redact_secrets(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Mask credential-bearing fields that slipped into a log call."""
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def _enrichers() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]


def _stdout_handler(json: bool) -> logging.Handler:
    renderer: structlog.types.Processor
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # stdlib records skip the structlog chain, so they are enriched here
            foreign_pre_chain=_enrichers(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    return handler


def setup_logging(*, json: bool = True, level: str = "INFO") -> None:
    """Send all gateway and server logs to stdout, one event per line.

    ``json`` picks JSON lines (deployments) over the coloured console
    renderer (local runs). ``level`` is a stdlib level name in any case.
    """
    structlog.configure(
        processors=[
            *_enrichers(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers[:] = [_stdout_handler(json)]
    root.setLevel(level.upper())

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
