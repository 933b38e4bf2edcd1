"""Full MIME parser. Walks the message to extract the fields a sync needs:
threading headers, sender, date, and the first text and HTML bodies.
"""

from __future__ import annotations

import email
import email.message
import email.policy
import email.utils
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from bs4 import BeautifulSoup

from .errors import ProtocolError


@dataclass(frozen=True)
class ParsedEmail:
    """Structured representation of a parsed message.

    Every field has a definite type; absent headers become empty strings
    (or ``None`` for bodies and date).
    An HTML-only message gets ``text`` rendered from its HTML part.
    """

    subject: str
    from_address: str
    text: str | None
    html: str | None
    date: datetime | None
    message_id: str
    in_reply_to: str
    references: list[str] = field(default_factory=list)


class MimeParser:
    """Stateless parser: raw RFC 822 bytes → ParsedEmail."""

    def parse(self, raw_bytes: bytes) -> ParsedEmail:
        try:
            msg = email.message_from_bytes(raw_bytes, policy=email.policy.default)
            text, html = self._extract_bodies(msg)
            if text is None and html:
                text = html_to_text(html)
            return ParsedEmail(
                subject=self._header(msg, "Subject"),
                from_address=self._sender(msg),
                text=text,
                html=html,
                date=self._parse_date(self._header(msg, "Date")),
                message_id=self._header(msg, "Message-ID").strip(),
                in_reply_to=self._header(msg, "In-Reply-To").strip(),
                references=self._header(msg, "References").split(),
            )
        except (LookupError, ValueError, TypeError, IndexError, AttributeError) as exc:
            raise ProtocolError(f"Failed to parse message: {exc}") from exc

    @staticmethod
    def _header(msg: email.message.EmailMessage, name: str) -> str:
        value = msg.get(name)
        return "" if value is None else str(value)

    @staticmethod
    def _sender(msg: email.message.EmailMessage) -> str:
        header = msg.get("From")
        if header is None:
            return ""
        addresses = getattr(header, "addresses", ())
        for address in addresses:
            if address.addr_spec and address.addr_spec != "<>":
                return address.addr_spec
        _, addr = email.utils.parseaddr(str(header))
        return addr

    @staticmethod
    def _parse_date(value: str) -> datetime | None:
        if not value:
            return None
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def _extract_bodies(self, msg: email.message.EmailMessage) -> tuple[str | None, str | None]:
        """Walk MIME parts and return (plain_text, html_text)."""
        body_text: str | None = None
        body_html: str | None = None

        for part in msg.walk():
            # Skip multipart containers; they have no content of their own
            if part.get_content_maintype() == "multipart":
                continue
            if part.get_content_disposition() == "attachment":
                continue

            content_type = part.get_content_type()
            if content_type not in ("text/plain", "text/html"):
                continue

            payload = part.get_content()
            if not isinstance(payload, str):
                continue
            if content_type == "text/plain" and body_text is None:
                body_text = payload
            elif content_type == "text/html" and body_html is None:
                body_html = payload

        return body_text, body_html


def html_to_text(html: str) -> str:
    """Render an HTML body as plain text, dropping script and style content."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"\n\s*\n\s*\n+", "\n\n", text)
    return text.strip()
