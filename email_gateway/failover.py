"""Two-host SMTP failover shared by credential verification and sending."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from .config import ConnectionConfig, Credentials
from .errors import ProtocolError
from .interfaces import MailTransport, MailTransportFactory

logger = structlog.get_logger()

T = TypeVar("T")


async def with_smtp_failover(
    config: ConnectionConfig,
    credentials: Credentials,
    fallback_host: str,
    transport_factory: MailTransportFactory,
    operation: Callable[[MailTransport], Awaitable[T]],
) -> tuple[T, str]:
    """Run *operation* against the primary SMTP host, then once against *fallback_host*.

    Returns the operation's result and the host that produced it.  The
    fallback's ProtocolError propagates when both hosts fail; there is no
    backoff and no further attempt.
    """
    primary = transport_factory(config, credentials)
    try:
        return await operation(primary), primary.host
    except ProtocolError as exc:
        logger.warning("smtp_primary_failed", host=primary.host, fallback=fallback_host, error=exc.message)

    secondary = transport_factory(config.with_smtp_host(fallback_host), credentials)
    return await operation(secondary), secondary.host
