"""Credential verifier: checks IMAP and SMTP logins independently."""

from __future__ import annotations

import asyncio

import structlog

from .config import ConnectionOverrides, Credentials, ProviderConfig, resolve_connection_config
from .errors import ProtocolError
from .failover import with_smtp_failover
from .interfaces import MailboxSessionFactory, MailTransport, MailTransportFactory
from .models import ImapCheck, SmtpCheck, VerifyResult

logger = structlog.get_logger()


class CredentialVerifier:
    """Confirm that a mailbox login works over both IMAP and SMTP.

    The two checks run concurrently and both always complete; one failing
    never hides the other's result.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        session_factory: MailboxSessionFactory,
        transport_factory: MailTransportFactory,
    ) -> None:
        self._provider = provider
        self._session_factory = session_factory
        self._transport_factory = transport_factory

    async def verify(
        self,
        credentials: Credentials,
        overrides: ConnectionOverrides | None = None,
    ) -> VerifyResult:
        config = resolve_connection_config(self._provider, overrides)
        imap, smtp = await asyncio.gather(
            self._check_imap(config, credentials),
            self._check_smtp(config, credentials),
        )
        result = VerifyResult(imap=imap, smtp=smtp)
        logger.info(
            "credentials_verified",
            mailbox_user=credentials.identity,
            imap_ok=imap.ok,
            smtp_ok=smtp.ok,
            smtp_host=smtp.smtp_host,
        )
        return result

    async def _check_imap(self, config, credentials: Credentials) -> ImapCheck:
        try:
            async with self._session_factory(config, credentials) as session:
                async with session.inbox_lock():
                    pass
        except ProtocolError as exc:
            return ImapCheck(ok=False, error=exc.message)
        return ImapCheck(ok=True)

    async def _check_smtp(self, config, credentials: Credentials) -> SmtpCheck:
        async def handshake(transport: MailTransport) -> None:
            await transport.verify()

        try:
            _, host = await with_smtp_failover(
                config,
                credentials,
                self._provider.smtp_fallback_host,
                self._transport_factory,
                handshake,
            )
        except ProtocolError as exc:
            return SmtpCheck(ok=False, error=exc.message, smtp_host=self._provider.smtp_fallback_host)
        return SmtpCheck(ok=True, smtp_host=host)
