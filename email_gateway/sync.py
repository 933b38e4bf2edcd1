"""Mailbox synchronizer: incremental, cursor-driven INBOX sync.

A sync opens one IMAP session, holds the inbox lock while it searches and
fetches, and hands back the batch together with the advanced cursor.  The
caller owns the cursor; nothing is persisted here.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Literal

import structlog

from .config import ConnectionOverrides, Credentials, ProviderConfig, resolve_connection_config
from .errors import Failure, ProtocolError
from .interfaces import MailboxSession, MailboxSessionFactory, MessageParser
from .models import NormalizedMessage, SyncResult
from .normalizer import MessageNormalizer

logger = structlog.get_logger()

ParseFailurePolicy = Literal["abort", "skip"]


def select_batch(uids: list[int], limit: int) -> list[int]:
    """Keep the *limit* newest UIDs, returned oldest first."""
    newest = sorted(uids, reverse=True)[:limit]
    return sorted(newest)


class MailboxSynchronizer:
    """Fetch INBOX messages newer than a cursor (or inside a backfill window)."""

    def __init__(
        self,
        provider: ProviderConfig,
        session_factory: MailboxSessionFactory,
        parser: MessageParser,
        *,
        normalizer: MessageNormalizer | None = None,
        parse_failure_policy: ParseFailurePolicy = "abort",
        clock=None,
    ) -> None:
        self._provider = provider
        self._session_factory = session_factory
        self._parser = parser
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._normalizer = normalizer or MessageNormalizer(clock=self._clock)
        self._parse_failure_policy = parse_failure_policy

    async def sync(
        self,
        credentials: Credentials,
        cursor: int | None = None,
        backfill_days: float = 14,
        limit: int = 50,
        overrides: ConnectionOverrides | None = None,
    ) -> SyncResult | Failure:
        config = resolve_connection_config(self._provider, overrides)
        log = logger.bind(mailbox_user=credentials.identity, cursor=cursor)

        try:
            async with self._session_factory(config, credentials) as session:
                async with session.inbox_lock():
                    result = await self._sync_locked(session, cursor, backfill_days, limit)
        except ProtocolError as exc:
            log.warning("sync_failed", error=exc.message)
            return Failure.from_exception(exc)

        log.info(
            "sync_complete",
            fetched=len(result.messages),
            skipped=len(result.skipped),
            new_cursor=result.cursor,
        )
        return result

    async def _sync_locked(
        self,
        session: MailboxSession,
        cursor: int | None,
        backfill_days: float,
        limit: int,
    ) -> SyncResult:
        # A zero cursor means nothing has been seen yet: same as no cursor.
        if cursor:
            candidates = await session.search_after(cursor)
        else:
            since = self._clock() - timedelta(days=backfill_days)
            candidates = await session.search_since(since)

        batch = select_batch(candidates, limit)

        messages: list[NormalizedMessage] = []
        skipped: list[int] = []
        max_uid = cursor or 0

        async for fetched in session.fetch(batch):
            max_uid = max(max_uid, fetched.uid)
            try:
                parsed = self._parser.parse(fetched.raw_bytes)
            except ProtocolError as exc:
                if self._parse_failure_policy == "abort":
                    raise
                logger.warning("message_parse_skipped", uid=fetched.uid, error=exc.message)
                skipped.append(fetched.uid)
                continue
            messages.append(self._normalizer.normalize(fetched, parsed))

        return SyncResult(cursor=max_uid, messages=messages, skipped=skipped)
