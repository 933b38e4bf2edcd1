"""Error taxonomy for the gateway.

Collaborators raise :class:`GatewayError` subclasses; the core components
catch them at their boundary and hand back a :class:`Failure` value, which
the HTTP routes map onto a status code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Category of a gateway failure."""

    CONFIG = "config"
    AUTH = "auth"
    VALIDATION = "validation"
    PROTOCOL = "protocol"


class GatewayError(Exception):
    """Base class for every error the gateway raises on purpose."""

    kind: ErrorKind = ErrorKind.PROTOCOL
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(GatewayError):
    """Required startup configuration is missing or invalid."""

    kind = ErrorKind.CONFIG
    status_code = 500


class AuthError(GatewayError):
    """The caller's API key did not match."""

    kind = ErrorKind.AUTH
    status_code = 401


class ValidationError(GatewayError):
    """Required request fields are missing."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class ProtocolError(GatewayError):
    """Connecting, authenticating, searching, fetching, parsing or sending failed."""

    kind = ErrorKind.PROTOCOL
    status_code = 500


_STATUS_BY_KIND = {
    ErrorKind.CONFIG: ConfigError.status_code,
    ErrorKind.AUTH: AuthError.status_code,
    ErrorKind.VALIDATION: ValidationError.status_code,
    ErrorKind.PROTOCOL: ProtocolError.status_code,
}


@dataclass(frozen=True)
class Failure:
    """Explicit error result returned by the core components."""

    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]

    @classmethod
    def from_exception(cls, exc: BaseException) -> Failure:
        if isinstance(exc, GatewayError):
            return cls(kind=exc.kind, message=exc.message)
        return cls(kind=ErrorKind.PROTOCOL, message=str(exc) or type(exc).__name__)
