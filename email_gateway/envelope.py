"""Lightweight envelope extraction from raw message bytes.

Uses ``email.parser.BytesHeaderParser`` which reads *only* the header block
with the lenient ``compat32`` policy.  The result is the fallback source
for subject and sender when the full MIME parse yields nothing usable.
"""

from __future__ import annotations

import email.errors
import email.header
import email.parser
import email.utils
from dataclasses import dataclass


@dataclass(frozen=True)
class Envelope:
    """Subject and sender taken from the header block alone."""

    subject: str = ""
    from_address: str = ""


def extract_envelope(raw_bytes: bytes) -> Envelope:
    """Extract envelope headers from raw RFC 822 bytes."""
    headers = email.parser.BytesHeaderParser().parsebytes(raw_bytes)

    return Envelope(
        subject=_decode(headers.get("Subject")),
        from_address=_first_address(_decode(headers.get("From"))),
    )


def _decode(value) -> str:
    """Decode RFC 2047 encoded-words.

    Undecodable charsets fall back to replacement chars; a malformed
    encoded-word leaves the header text as it arrived.
    """
    if value is None:
        return ""
    try:
        chunks = email.header.decode_header(str(value))
    except email.errors.HeaderParseError:
        return str(value)
    parts = []
    for chunk, charset in chunks:
        if isinstance(chunk, bytes):
            try:
                parts.append(chunk.decode(charset or "ascii", errors="replace"))
            except LookupError:
                parts.append(chunk.decode("utf-8", errors="replace"))
        else:
            parts.append(chunk)
    return "".join(parts)


def _first_address(header_value: str) -> str:
    for _, addr in email.utils.getaddresses([header_value]):
        if addr:
            return addr
    return ""
