"""Gateway configuration.

Process settings are loaded from environment variables with
pydantic-settings.  Per-request connection settings are resolved from the
provider defaults plus the caller's ``advanced`` overrides.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class ProviderConfig(BaseSettings):
    """Fixed mailbox provider host conventions (Namecheap Private Email)."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    imap_host: str = Field(default="mail.privateemail.com", description="IMAP server hostname")
    imap_port: int = Field(default=993, description="IMAP server port")
    imap_secure: bool = Field(default=True, description="Use implicit TLS for IMAP")
    smtp_host: str = Field(default="mail.privateemail.com", description="Primary SMTP host")
    smtp_port: int = Field(default=465, description="SMTP server port")
    smtp_secure: bool = Field(default=True, description="Use implicit TLS for SMTP")
    smtp_fallback_host: str = Field(
        default="smtp.privateemail.com",
        description="SMTP host tried once when the primary host fails",
    )


class Settings(BaseSettings):
    """Top-level settings for the gateway process.

    All env vars are prefixed with ``GATEWAY_``.
    Example: ``GATEWAY_API_KEY=change-me``
    """

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    # --- Auth ---------------------------------------------------------------
    api_key: SecretStr = Field(
        description="Shared secret expected in the x-api-key header",
    )

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )
    max_body_bytes: int = Field(
        default=2 * 1024 * 1024,
        description="Largest accepted request body in bytes",
    )

    # --- Mail protocols -----------------------------------------------------
    network_timeout_seconds: float = Field(
        default=60.0,
        description="Socket timeout handed to the IMAP and SMTP clients",
    )
    parse_failure_policy: Literal["abort", "skip"] = Field(
        default="abort",
        description="What a sync does when one message fails to parse",
    )
    provider: ProviderConfig = Field(default_factory=ProviderConfig)

    @field_validator("api_key")
    @classmethod
    def _api_key_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("api_key must not be empty")
        return value


def load_settings(**overrides) -> Settings:
    """Load settings from the environment, raising ConfigError if incomplete."""
    try:
        return Settings(**overrides)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigError(f"Invalid or missing settings: {fields}") from exc


class ConnectionOverrides(BaseModel):
    """Caller-supplied ``advanced`` block.

    Values are taken as given; nothing beyond JSON typing is checked.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imap_port: int | None = None
    imap_secure: bool | None = None
    smtp_host: str | None = None
    smtp_port: int | None = None
    smtp_secure: bool | None = None


class ConnectionConfig(BaseModel):
    """Effective IMAP/SMTP endpoints for a single request."""

    model_config = ConfigDict(frozen=True)

    imap_host: str
    imap_port: int
    imap_secure: bool
    smtp_host: str
    smtp_port: int
    smtp_secure: bool

    def with_smtp_host(self, host: str) -> ConnectionConfig:
        return self.model_copy(update={"smtp_host": host})


class Credentials(BaseModel):
    """Mailbox login for one request."""

    model_config = ConfigDict(frozen=True)

    identity: str
    secret: SecretStr


def resolve_connection_config(
    provider: ProviderConfig,
    overrides: ConnectionOverrides | None = None,
) -> ConnectionConfig:
    """Merge provider defaults with per-request overrides, field by field.

    The IMAP host always comes from the provider.
    """
    overrides = overrides or ConnectionOverrides()

    def pick(value, default):
        return default if value is None else value

    return ConnectionConfig(
        imap_host=provider.imap_host,
        imap_port=pick(overrides.imap_port, provider.imap_port),
        imap_secure=pick(overrides.imap_secure, provider.imap_secure),
        smtp_host=pick(overrides.smtp_host, provider.smtp_host),
        smtp_port=pick(overrides.smtp_port, provider.smtp_port),
        smtp_secure=pick(overrides.smtp_secure, provider.smtp_secure),
    )
