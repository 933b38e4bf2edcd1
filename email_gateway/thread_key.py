"""Deterministic conversation keys derived from threading headers."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence


def derive_thread_key(
    references: Sequence[str],
    in_reply_to: str,
    message_id: str,
    subject: str,
    from_email: str,
) -> str:
    """Return a SHA-256 hex key grouping messages of one conversation.

    The seed is the first non-empty of: joined ``references``,
    ``in_reply_to``, ``message_id``, ``subject``; it is suffixed with the
    sender so identical headers from different senders never collide.
    """
    seed = " ".join(references) or in_reply_to or message_id or subject
    return hashlib.sha256(f"{seed}|{from_email}".encode("utf-8")).hexdigest()
