"""HTTP endpoints: health, credential test, sync, send."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .auth import ApiKeyDep
from .deps import get_sender, get_synchronizer, get_verifier
from .errors import Failure
from .models import SendRequest, SyncRequest, VerifyRequest
from .sender import OutboundSender
from .sync import MailboxSynchronizer
from .verifier import CredentialVerifier

logger = structlog.get_logger()
router = APIRouter()


def _failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse({"ok": False, "error": failure.message}, status_code=failure.status_code)


@router.get("/health")
async def health() -> dict:
    return {"ok": True}


@router.post("/test", dependencies=[ApiKeyDep])
async def verify_credentials(
    body: VerifyRequest,
    verifier: Annotated[CredentialVerifier, Depends(get_verifier)],
) -> JSONResponse:
    """Check IMAP and SMTP logins; always 200 with both sub-results."""
    result = await verifier.verify(body.credentials, body.advanced)
    return JSONResponse(result.to_json())


@router.post("/sync", dependencies=[ApiKeyDep])
async def sync_mailbox(
    body: SyncRequest,
    synchronizer: Annotated[MailboxSynchronizer, Depends(get_synchronizer)],
) -> JSONResponse:
    """Return INBOX messages newer than ``cursor`` and the advanced cursor."""
    result = await synchronizer.sync(
        body.credentials,
        cursor=body.cursor,
        backfill_days=body.backfill_days,
        limit=body.limit,
        overrides=body.advanced,
    )
    if isinstance(result, Failure):
        return _failure_response(result)
    return JSONResponse({"ok": True, **result.to_json()})


@router.post("/send", dependencies=[ApiKeyDep])
async def send_message(
    body: SendRequest,
    sender: Annotated[OutboundSender, Depends(get_sender)],
) -> JSONResponse:
    """Send one message, failing over to the secondary SMTP host once."""
    result = await sender.send(body, body.advanced)
    if isinstance(result, Failure):
        return _failure_response(result)
    return JSONResponse({"ok": True, **result.to_json()})
