"""Shared test fixtures for the email gateway test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.message import EmailMessage

import pytest
from pydantic import SecretStr

from email_gateway.config import ConnectionConfig, Credentials, ProviderConfig, Settings
from email_gateway.envelope import extract_envelope
from email_gateway.errors import ProtocolError
from email_gateway.interfaces import FetchedMessage, SessionState

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def provider() -> ProviderConfig:
    return ProviderConfig()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key")


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(identity="owner@example.com", secret=SecretStr("hunter2"))


@pytest.fixture
def connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        imap_host="imap.test.com",
        imap_port=993,
        imap_secure=True,
        smtp_host="smtp-primary.test.com",
        smtp_port=465,
        smtp_secure=True,
    )


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def build_plain_email(
    *,
    subject: str | None = "Test Subject",
    from_addr: str | None = "sender@example.com",
    to_addr: str = "owner@example.com",
    body: str = "Hello, World!",
    message_id: str | None = "<test-001@example.com>",
    in_reply_to: str | None = None,
    references: str | None = None,
    date: str | None = "Sun, 01 Jun 2025 12:00:00 +0000",
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    if subject is not None:
        msg["Subject"] = subject
    if from_addr is not None:
        msg["From"] = from_addr
    msg["To"] = to_addr
    if message_id is not None:
        msg["Message-ID"] = message_id
    if in_reply_to is not None:
        msg["In-Reply-To"] = in_reply_to
    if references is not None:
        msg["References"] = references
    if date is not None:
        msg["Date"] = date
    return msg.as_bytes()


def build_html_email(*, body_html: str = "<p>Hello</p>") -> bytes:
    msg = MIMEText(body_html, "html")
    msg["Subject"] = "HTML Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "owner@example.com"
    msg["Message-ID"] = "<html-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"
    return msg.as_bytes()


def build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
) -> bytes:
    """Build a multipart/alternative email with text and HTML parts."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "Sender Name <sender@example.com>"
    msg["To"] = "owner@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"
    msg.attach(MIMEText(body_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))
    return msg.as_bytes()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return build_plain_email()


@pytest.fixture
def html_eml_bytes() -> bytes:
    return build_html_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return build_multipart_email()


def make_fetched(uid: int, raw: bytes, flags: Sequence[str] = ()) -> FetchedMessage:
    return FetchedMessage(uid=uid, flags=tuple(flags), envelope=extract_envelope(raw), raw_bytes=raw)


# ------------------------------------------------------------------
# In-memory IMAP session
# ------------------------------------------------------------------


class FakeMailbox:
    """INBOX contents keyed by UID: (raw bytes, flags, internal date)."""

    def __init__(self) -> None:
        self.messages: dict[int, tuple[bytes, tuple[str, ...], datetime]] = {}

    def add(
        self,
        uid: int,
        raw: bytes | None = None,
        *,
        flags: Sequence[str] = (),
        received: datetime = FIXED_NOW,
    ) -> None:
        raw = raw if raw is not None else build_plain_email(
            subject=f"Message {uid}",
            message_id=f"<msg-{uid}@example.com>",
        )
        self.messages[uid] = (raw, tuple(flags), received)


class FakeImapSession:
    """MailboxSession backed by a FakeMailbox; records every call."""

    def __init__(
        self,
        mailbox: FakeMailbox,
        config: ConnectionConfig,
        credentials: Credentials,
        *,
        fail_on: str | None = None,
    ) -> None:
        self.mailbox = mailbox
        self.config = config
        self.credentials = credentials
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.fetched_uids: list[int] = []
        self.state = SessionState.IDLE

    def _maybe_fail(self, step: str) -> None:
        if self.fail_on == step:
            self.state = SessionState.FAILED
            raise ProtocolError(f"IMAP {step} failed: simulated")

    async def __aenter__(self) -> FakeImapSession:
        self.calls.append("connect")
        self.state = SessionState.CONNECTING
        try:
            self._maybe_fail("connect")
        except ProtocolError:
            await self.logout()
            raise
        self.state = SessionState.AUTHENTICATED
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()

    async def logout(self) -> None:
        self.calls.append("logout")
        self.state = SessionState.CLOSED

    @asynccontextmanager
    async def inbox_lock(self) -> AsyncIterator[None]:
        self.calls.append("lock")
        self._maybe_fail("lock")
        self.state = SessionState.ACTIVE
        try:
            yield
        finally:
            self.calls.append("unlock")

    async def search_after(self, cursor: int) -> list[int]:
        self.calls.append(f"search_after:{cursor}")
        self._maybe_fail("search")
        return sorted(uid for uid in self.mailbox.messages if uid > cursor)

    async def search_since(self, since: datetime) -> list[int]:
        self.calls.append(f"search_since:{since.date().isoformat()}")
        self._maybe_fail("search")
        return sorted(
            uid
            for uid, (_, _, received) in self.mailbox.messages.items()
            if received.date() >= since.date()
        )

    async def fetch(self, uids: Sequence[int]) -> AsyncIterator[FetchedMessage]:
        for uid in uids:
            self._maybe_fail("fetch")
            if uid not in self.mailbox.messages:
                continue
            raw, flags, _ = self.mailbox.messages[uid]
            self.fetched_uids.append(uid)
            yield make_fetched(uid, raw, flags)


class FakeSessionFactory:
    """Callable MailboxSessionFactory that remembers the sessions it built."""

    def __init__(self, mailbox: FakeMailbox, *, fail_on: str | None = None) -> None:
        self.mailbox = mailbox
        self.fail_on = fail_on
        self.sessions: list[FakeImapSession] = []

    def __call__(self, config: ConnectionConfig, credentials: Credentials) -> FakeImapSession:
        session = FakeImapSession(self.mailbox, config, credentials, fail_on=self.fail_on)
        self.sessions.append(session)
        return session


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def session_factory(mailbox: FakeMailbox) -> FakeSessionFactory:
    return FakeSessionFactory(mailbox)


# ------------------------------------------------------------------
# In-memory SMTP transport
# ------------------------------------------------------------------


class FakeTransport:
    def __init__(self, factory: FakeTransportFactory, config: ConnectionConfig) -> None:
        self._factory = factory
        self.host = config.smtp_host
        self.config = config

    def _maybe_fail(self, operation: str) -> None:
        if self.host in self._factory.failing_hosts:
            raise ProtocolError(f"SMTP {operation} via {self.host} failed: simulated")

    async def verify(self) -> None:
        self._factory.attempts.append(("verify", self.host))
        self._maybe_fail("verify")

    async def send(self, message: EmailMessage) -> str:
        self._factory.attempts.append(("send", self.host))
        self._maybe_fail("send")
        self._factory.delivered.append((self.host, message))
        return str(message["Message-ID"])


class FakeTransportFactory:
    """Callable MailTransportFactory; hosts in ``failing_hosts`` always fail."""

    def __init__(self, failing_hosts: Sequence[str] = ()) -> None:
        self.failing_hosts = set(failing_hosts)
        self.attempts: list[tuple[str, str]] = []
        self.delivered: list[tuple[str, EmailMessage]] = []
        self.credentials: list[Credentials] = []

    def __call__(self, config: ConnectionConfig, credentials: Credentials) -> FakeTransport:
        self.credentials.append(credentials)
        return FakeTransport(self, config)


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()
