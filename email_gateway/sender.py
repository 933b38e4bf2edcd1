"""Outbound sender: one message, primary SMTP host with a single fallback."""

from __future__ import annotations

import email.utils
from email.message import EmailMessage

import structlog

from .config import ConnectionOverrides, ProviderConfig, resolve_connection_config
from .errors import Failure, ProtocolError, ValidationError
from .failover import with_smtp_failover
from .interfaces import MailTransport, MailTransportFactory
from .models import SendRequest, SendResult

logger = structlog.get_logger()

# Headers the sender always writes itself from the request fields.
_MANAGED_HEADERS = frozenset({"from", "to", "cc", "subject", "content-type", "mime-version"})


def _address_list(value: str | list[str] | None) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    return ", ".join(value)


def build_message(request: SendRequest) -> EmailMessage:
    """Build the MIME message once so both delivery attempts send identical bytes."""
    msg = EmailMessage()
    msg["From"] = request.from_email
    msg["To"] = _address_list(request.to)
    cc = _address_list(request.cc)
    if cc:
        msg["Cc"] = cc
    msg["Subject"] = request.subject

    for name, value in request.headers.items():
        if name.lower() in _MANAGED_HEADERS:
            continue
        del msg[name]
        msg[name] = value

    if "Message-ID" not in msg:
        domain = request.from_email.rpartition("@")[2] or None
        msg["Message-ID"] = email.utils.make_msgid(domain=domain)
    if "Date" not in msg:
        msg["Date"] = email.utils.formatdate(localtime=False, usegmt=True)

    if request.body_text:
        msg.set_content(request.body_text)
        if request.body_html:
            msg.add_alternative(request.body_html, subtype="html")
    else:
        msg.set_content(request.body_html or "", subtype="html")

    return msg


class OutboundSender:
    """Deliver a message through the primary host, retrying once via the fallback host."""

    def __init__(self, provider: ProviderConfig, transport_factory: MailTransportFactory) -> None:
        self._provider = provider
        self._transport_factory = transport_factory

    async def send(
        self,
        request: SendRequest,
        overrides: ConnectionOverrides | None = None,
    ) -> SendResult | Failure:
        config = resolve_connection_config(self._provider, overrides)
        try:
            message = build_message(request)
        except ValueError as exc:
            logger.info("send_rejected", mailbox_user=request.from_email, error=str(exc))
            return Failure.from_exception(ValidationError(f"Invalid message: {exc}"))

        async def deliver(transport: MailTransport) -> str:
            return await transport.send(message)

        try:
            message_id, used_host = await with_smtp_failover(
                config,
                request.credentials,
                self._provider.smtp_fallback_host,
                self._transport_factory,
                deliver,
            )
        except ProtocolError as exc:
            logger.warning("send_failed", mailbox_user=request.from_email, error=exc.message)
            return Failure.from_exception(exc)

        logger.info("message_sent", mailbox_user=request.from_email, used_host=used_host, message_id=message_id)
        return SendResult(message_id=message_id, used_host=used_host)
