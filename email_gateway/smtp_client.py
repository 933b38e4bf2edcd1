"""SMTP transport built on aiosmtplib, one connection per operation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from email.message import EmailMessage

import aiosmtplib
import structlog

from .config import ConnectionConfig, Credentials
from .errors import ProtocolError
from .interfaces import SessionState

logger = structlog.get_logger()


class SmtpTransport:
    """Connect, authenticate and either verify or send against one SMTP host.

    Every call opens a fresh connection and always quits it afterwards;
    quit failures are suppressed.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        credentials: Credentials,
        *,
        timeout: float | None = None,
    ) -> None:
        self.host = config.smtp_host
        self._port = config.smtp_port
        self._secure = config.smtp_secure
        self._credentials = credentials
        self._timeout = timeout
        self.state = SessionState.IDLE

    async def verify(self) -> None:
        """Check that the host accepts the login, without sending anything."""
        async with self._session("verify"):
            pass
        logger.info("smtp_verified", host=self.host)

    async def send(self, message: EmailMessage) -> str:
        """Send *message* and return its Message-ID."""
        async with self._session("send") as client:
            self.state = SessionState.ACTIVE
            rejected, response = await client.send_message(message)
        if rejected:
            logger.warning("smtp_recipients_rejected", host=self.host, rejected=sorted(rejected))
        logger.info("smtp_message_accepted", host=self.host, response=response)
        return str(message.get("Message-ID", ""))

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[aiosmtplib.SMTP]:
        client = aiosmtplib.SMTP(
            hostname=self.host,
            port=self._port,
            use_tls=self._secure,
            timeout=self._timeout,
        )
        try:
            self.state = SessionState.CONNECTING
            await client.connect()
            await client.login(
                self._credentials.identity,
                self._credentials.secret.get_secret_value(),
            )
            self.state = SessionState.AUTHENTICATED
            yield client
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as exc:
            self.state = SessionState.FAILED
            raise ProtocolError(f"SMTP {operation} via {self.host} failed: {exc}") from exc
        finally:
            await self._quit(client)

    async def _quit(self, client: aiosmtplib.SMTP) -> None:
        self.state = SessionState.CLOSING
        try:
            if client.is_connected:
                await client.quit()
        except (aiosmtplib.SMTPException, OSError, TimeoutError) as exc:
            logger.debug("smtp_quit_failed", host=self.host, error=str(exc))
            client.close()
        self.state = SessionState.CLOSED
