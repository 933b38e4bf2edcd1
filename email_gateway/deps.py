"""FastAPI dependency-injection helpers for the core components."""

from __future__ import annotations

from functools import partial
from typing import Annotated

from fastapi import Depends, Request

from .config import Settings
from .imap_client import ImapSession
from .interfaces import MailboxSessionFactory, MailTransportFactory
from .parser import MimeParser
from .sender import OutboundSender
from .smtp_client import SmtpTransport
from .sync import MailboxSynchronizer
from .verifier import CredentialVerifier


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_session_factory(settings: SettingsDep) -> MailboxSessionFactory:
    return partial(ImapSession, timeout=settings.network_timeout_seconds)


def get_transport_factory(settings: SettingsDep) -> MailTransportFactory:
    return partial(SmtpTransport, timeout=settings.network_timeout_seconds)


def get_verifier(
    settings: SettingsDep,
    session_factory: Annotated[MailboxSessionFactory, Depends(get_session_factory)],
    transport_factory: Annotated[MailTransportFactory, Depends(get_transport_factory)],
) -> CredentialVerifier:
    return CredentialVerifier(settings.provider, session_factory, transport_factory)


def get_synchronizer(
    settings: SettingsDep,
    session_factory: Annotated[MailboxSessionFactory, Depends(get_session_factory)],
) -> MailboxSynchronizer:
    return MailboxSynchronizer(
        settings.provider,
        session_factory,
        MimeParser(),
        parse_failure_policy=settings.parse_failure_policy,
    )


def get_sender(
    settings: SettingsDep,
    transport_factory: Annotated[MailTransportFactory, Depends(get_transport_factory)],
) -> OutboundSender:
    return OutboundSender(settings.provider, transport_factory)
