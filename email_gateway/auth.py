"""Shared-secret API key check for the mailbox routes."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header

from .deps import SettingsDep
from .errors import AuthError


def api_key_matches(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of the UTF-8 bytes of both keys."""
    return hmac.compare_digest((provided or "").encode("utf-8"), expected.encode("utf-8"))


async def require_api_key(
    settings: SettingsDep,
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    if not api_key_matches(x_api_key, settings.api_key.get_secret_value()):
        raise AuthError("Unauthorized")


ApiKeyDep = Depends(require_api_key)
