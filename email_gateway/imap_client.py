"""Async IMAP session wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import email.errors
import imaplib
import re
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TypeVar

import structlog

from .config import ConnectionConfig, Credentials
from .envelope import extract_envelope
from .errors import ProtocolError
from .interfaces import FetchedMessage, SessionState

logger = structlog.get_logger()

T = TypeVar("T")

INBOX = "INBOX"

_UID_RE = re.compile(rb"UID (\d+)")
_FLAGS_RE = re.compile(rb"FLAGS \(([^)]*)\)")


class ImapSession:
    """Async-friendly IMAP session scoped to a single request.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.  Use as an
    async context manager::

        async with ImapSession(config, credentials) as session:
            async with session.inbox_lock():
                uids = await session.search_after(cursor)
    """

    def __init__(
        self,
        config: ConnectionConfig,
        credentials: Credentials,
        *,
        timeout: float | None = None,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._timeout = timeout
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None
        self._lock = asyncio.Lock()
        self.state = SessionState.IDLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ImapSession:
        try:
            await self.connect()
        except BaseException:
            await self.logout()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()

    async def connect(self) -> None:
        """Open the connection and log in."""
        self.state = SessionState.CONNECTING
        await self._run("connect", self._connect_sync)
        self.state = SessionState.AUTHENTICATED
        logger.info(
            "imap_connected",
            host=self._config.imap_host,
            port=self._config.imap_port,
            mailbox_user=self._credentials.identity,
        )

    def _connect_sync(self) -> None:
        if self._config.imap_secure:
            self._conn = imaplib.IMAP4_SSL(
                self._config.imap_host, self._config.imap_port, timeout=self._timeout
            )
        else:
            self._conn = imaplib.IMAP4(
                self._config.imap_host, self._config.imap_port, timeout=self._timeout
            )
        self._conn.login(self._credentials.identity, self._credentials.secret.get_secret_value())

    async def logout(self) -> None:
        """Log out; failures are logged and suppressed."""
        if self._conn is None:
            self.state = SessionState.CLOSED
            return
        self.state = SessionState.CLOSING
        try:
            await asyncio.to_thread(self._conn.logout)
        except (imaplib.IMAP4.error, OSError) as exc:
            logger.debug("imap_logout_failed", error=str(exc))
        finally:
            self._conn = None
            self.state = SessionState.CLOSED
            logger.debug("imap_disconnected")

    # ------------------------------------------------------------------
    # Mailbox lock
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def inbox_lock(self) -> AsyncIterator[None]:
        """Hold the session's exclusive lock with INBOX selected."""
        async with self._lock:
            await self._run("select", self._select_sync)
            self.state = SessionState.ACTIVE
            try:
                yield
            finally:
                if self.state is SessionState.ACTIVE:
                    self.state = SessionState.AUTHENTICATED

    def _select_sync(self) -> None:
        conn = self._require_conn()
        status, data = conn.select(INBOX)
        if status != "OK":
            raise ProtocolError(f"Cannot select {INBOX}: {_describe(data)}")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_after(self, cursor: int) -> list[int]:
        """Return UIDs strictly greater than *cursor*.

        ``UID n:*`` always matches the newest message even when its UID is
        below *n*, so the result is filtered client-side.
        """
        uids = await self._run("search", self._search_sync, f"UID {cursor + 1}:*")
        return [uid for uid in uids if uid > cursor]

    async def search_since(self, since: datetime) -> list[int]:
        """Return UIDs of messages on or after *since*.

        IMAP date search is day-granular (not timestamp-granular).
        """
        criteria = f"SINCE {since.strftime('%d-%b-%Y')}"
        return await self._run("search", self._search_sync, criteria)

    def _search_sync(self, criteria: str) -> list[int]:
        conn = self._require_conn()
        status, data = conn.uid("SEARCH", None, criteria)
        if status != "OK":
            raise ProtocolError(f"IMAP search failed: {_describe(data)}")
        if not data or not data[0]:
            return []
        return [int(uid) for uid in data[0].split()]

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch(self, uids: Sequence[int]) -> AsyncIterator[FetchedMessage]:
        """Fetch flags and raw source, one message in flight at a time.

        UIDs that vanished between search and fetch are skipped.
        """
        for uid in uids:
            fetched = await self._run("fetch", self._fetch_sync, uid)
            if fetched is not None:
                yield fetched

    def _fetch_sync(self, uid: int) -> FetchedMessage | None:
        conn = self._require_conn()
        status, data = conn.uid("FETCH", str(uid), "(UID FLAGS BODY.PEEK[])")
        if status != "OK":
            raise ProtocolError(f"IMAP fetch of UID {uid} failed: {_describe(data)}")

        meta = b""
        raw_bytes: bytes | None = None
        for item in data or []:
            if isinstance(item, tuple):
                meta += item[0]
                raw_bytes = item[1]
            elif isinstance(item, bytes):
                meta += item
        if raw_bytes is None:
            return None

        uid_match = _UID_RE.search(meta)
        flags_match = _FLAGS_RE.search(meta)
        flags = tuple(f.decode() for f in flags_match.group(1).split()) if flags_match else ()

        return FetchedMessage(
            uid=int(uid_match.group(1)) if uid_match else uid,
            flags=flags,
            envelope=extract_envelope(raw_bytes),
            raw_bytes=raw_bytes,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise ProtocolError("IMAP session is not connected")
        return self._conn

    async def _run(self, operation: str, func: Callable[..., T], *args: object) -> T:
        """Run a blocking imaplib call in a thread, mapping its errors to ProtocolError.

        Header decoding of the fetched bytes runs in the same thread, so
        ``email`` and value errors are mapped as well.
        """
        try:
            return await asyncio.to_thread(func, *args)
        except ProtocolError:
            self.state = SessionState.FAILED
            raise
        except (imaplib.IMAP4.error, OSError, email.errors.MessageError, ValueError) as exc:
            self.state = SessionState.FAILED
            logger.warning("imap_operation_failed", operation=operation, error=str(exc))
            raise ProtocolError(f"IMAP {operation} failed: {exc}") from exc


def _describe(data: object) -> str:
    if isinstance(data, list) and data and isinstance(data[0], bytes):
        return data[0].decode(errors="replace")
    return str(data)
