"""Capability interfaces the core components drive.

The IMAP session, SMTP transport and MIME parser are consumed through
these protocols so the synchronizer, verifier and sender can be exercised
against in-memory fakes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from enum import Enum
from typing import Protocol

from .config import ConnectionConfig, Credentials
from .envelope import Envelope
from .parser import ParsedEmail


class SessionState(str, Enum):
    """Lifecycle of a protocol session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchedMessage:
    """One message as returned by an IMAP ``UID FETCH``."""

    uid: int
    flags: tuple[str, ...]
    envelope: Envelope
    raw_bytes: bytes


class MailboxSession(Protocol):
    """An authenticated IMAP session, usable as an async context manager.

    Entering connects and logs in; exiting logs out with errors suppressed.
    """

    state: SessionState

    async def __aenter__(self) -> MailboxSession: ...

    async def __aexit__(self, *exc_info: object) -> None: ...

    def inbox_lock(self) -> AbstractAsyncContextManager[None]: ...

    async def search_after(self, cursor: int) -> list[int]: ...

    async def search_since(self, since: datetime) -> list[int]: ...

    def fetch(self, uids: Sequence[int]) -> AsyncIterator[FetchedMessage]: ...


class MailTransport(Protocol):
    """One SMTP connection target (host, port, TLS policy, login)."""

    host: str

    async def verify(self) -> None: ...

    async def send(self, message: EmailMessage) -> str: ...


class MessageParser(Protocol):
    def parse(self, raw_bytes: bytes) -> ParsedEmail: ...


MailboxSessionFactory = Callable[[ConnectionConfig, Credentials], MailboxSession]
MailTransportFactory = Callable[[ConnectionConfig, Credentials], MailTransport]
