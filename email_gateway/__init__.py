"""Email Gateway: stateless IMAP sync, SMTP send and credential checks over HTTP."""

from .app import create_app
from .config import (
    ConnectionConfig,
    ConnectionOverrides,
    Credentials,
    ProviderConfig,
    Settings,
    load_settings,
    resolve_connection_config,
)
from .errors import (
    AuthError,
    ConfigError,
    ErrorKind,
    Failure,
    GatewayError,
    ProtocolError,
    ValidationError,
)
from .imap_client import ImapSession
from .models import NormalizedMessage, SendRequest, SendResult, SyncResult, VerifyResult
from .parser import MimeParser, ParsedEmail
from .sender import OutboundSender
from .smtp_client import SmtpTransport
from .sync import MailboxSynchronizer
from .thread_key import derive_thread_key
from .verifier import CredentialVerifier

__all__ = [
    "AuthError",
    "ConfigError",
    "ConnectionConfig",
    "ConnectionOverrides",
    "CredentialVerifier",
    "Credentials",
    "ErrorKind",
    "Failure",
    "GatewayError",
    "ImapSession",
    "MailboxSynchronizer",
    "MimeParser",
    "NormalizedMessage",
    "OutboundSender",
    "ParsedEmail",
    "ProtocolError",
    "ProviderConfig",
    "SendRequest",
    "SendResult",
    "Settings",
    "SmtpTransport",
    "SyncResult",
    "ValidationError",
    "VerifyResult",
    "create_app",
    "derive_thread_key",
    "load_settings",
    "resolve_connection_config",
]
