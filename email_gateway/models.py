"""Request and result models.

JSON payloads use camelCase keys; Python code uses snake_case.  Every
model accepts either form (``populate_by_name=True``) and serializes with
the camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import ConnectionOverrides, Credentials


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------


class MailboxRequest(CamelModel):
    """Fields shared by the credential-test and sync requests."""

    email: str = Field(min_length=1, description="Mailbox address used as IMAP/SMTP login")
    password: str = Field(min_length=1, repr=False, description="Mailbox password")
    advanced: ConnectionOverrides | None = None

    @property
    def credentials(self) -> Credentials:
        return Credentials(identity=self.email, secret=SecretStr(self.password))


class VerifyRequest(MailboxRequest):
    pass


class SyncRequest(MailboxRequest):
    cursor: int | None = Field(default=None, ge=0, description="Highest UID already seen")
    backfill_days: float = Field(default=14, ge=0, le=36500, description="First-sync window in days")
    limit: int = Field(default=50, ge=1, description="Maximum messages per batch")


def _has_line_break(value: str) -> bool:
    return "\r" in value or "\n" in value


class SendRequest(CamelModel):
    from_email: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)
    to: str | list[str]
    cc: str | list[str] | None = None
    subject: str = Field(min_length=1)
    body_text: str | None = None
    body_html: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    advanced: ConnectionOverrides | None = None

    @field_validator("from_email", "subject", "to", "cc")
    @classmethod
    def _single_line(cls, value):
        items = [value] if isinstance(value, str) else value or []
        if any(_has_line_break(item) for item in items):
            raise ValueError("must not contain CR or LF")
        return value

    @field_validator("headers")
    @classmethod
    def _single_line_headers(cls, value: dict[str, str]) -> dict[str, str]:
        for name, header_value in value.items():
            if _has_line_break(name) or _has_line_break(header_value):
                raise ValueError(f"header {name!r} must not contain CR or LF")
        return value

    @model_validator(mode="after")
    def _require_body(self) -> SendRequest:
        if not self.to:
            raise ValueError("to is required")
        if not self.body_text and not self.body_html:
            raise ValueError("bodyText or bodyHtml is required")
        return self

    @property
    def credentials(self) -> Credentials:
        return Credentials(identity=self.from_email, secret=SecretStr(self.password))


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------


class NormalizedMessage(CamelModel):
    """One inbox message as returned to the caller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    uid: int
    external_thread_key: str
    message_id: str
    in_reply_to: str
    references: list[str]
    subject: str
    from_email: str
    date: datetime
    flags: list[str]
    snippet: str = Field(max_length=240)
    body_text: str = Field(max_length=20000)
    body_html: str = Field(max_length=20000)


class ImapCheck(CamelModel):
    ok: bool
    error: str | None = None


class SmtpCheck(CamelModel):
    ok: bool
    error: str | None = None
    smtp_host: str


class VerifyResult(CamelModel):
    imap: ImapCheck
    smtp: SmtpCheck

    @property
    def ok(self) -> bool:
        return self.imap.ok and self.smtp.ok

    def to_json(self) -> dict:
        return {"ok": self.ok, **super().to_json()}


class SyncResult(CamelModel):
    cursor: int
    messages: list[NormalizedMessage]
    skipped: list[int] = Field(default_factory=list)


class SendResult(CamelModel):
    message_id: str
    used_host: str
