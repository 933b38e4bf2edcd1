"""Message normalizer: turns a fetched + parsed message into NormalizedMessage."""

from __future__ import annotations

from datetime import datetime, timezone

from .interfaces import FetchedMessage
from .models import NormalizedMessage
from .parser import ParsedEmail
from .thread_key import derive_thread_key

NO_SUBJECT = "(no subject)"
SNIPPET_LENGTH = 240
BODY_LENGTH = 20000


class MessageNormalizer:
    """Total function over (FetchedMessage, ParsedEmail); never raises on missing fields."""

    def __init__(self, clock=None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def normalize(self, fetched: FetchedMessage, parsed: ParsedEmail) -> NormalizedMessage:
        subject = parsed.subject or fetched.envelope.subject or NO_SUBJECT
        from_email = parsed.from_address or fetched.envelope.from_address
        text = parsed.text or ""

        return NormalizedMessage(
            uid=fetched.uid,
            external_thread_key=derive_thread_key(
                parsed.references,
                parsed.in_reply_to,
                parsed.message_id,
                subject,
                from_email,
            ),
            message_id=parsed.message_id,
            in_reply_to=parsed.in_reply_to,
            references=list(parsed.references),
            subject=subject,
            from_email=from_email,
            date=parsed.date or self._clock(),
            flags=sorted(set(fetched.flags)),
            snippet=make_snippet(text or subject),
            body_text=text[:BODY_LENGTH],
            body_html=(parsed.html or "")[:BODY_LENGTH],
        )


def make_snippet(value: str) -> str:
    """Collapse whitespace runs to single spaces, strip, and cut to 240 chars."""
    return " ".join(value.split())[:SNIPPET_LENGTH]
