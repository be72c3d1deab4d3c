"""Luma check-in endpoints.

- POST /api/luma/webhook/check-in - Luma webhook, optionally HMAC-signed
- POST /api/luma/manual-check-in - Admin-triggered check-in

Both endpoints run the same orchestrator and respond with
{success, message, tokenId?, alreadyMinted?}.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from attendance_nft.api.dependencies import (
    get_orchestrator,
    require_admin,
    validate_webhook_signature,
)
from attendance_nft.core.timezone import utcnow
from attendance_nft.services.checkin.orchestrator import CheckInOrchestrator, CheckInResult

logger = structlog.get_logger()
router = APIRouter(prefix="/api/luma", tags=["luma"])

INTERNAL_ERROR_MESSAGE = "Internal server error while processing check-in"


def _parse_body(raw_body: bytes) -> dict[str, Any]:
    """Parse a JSON object body; anything else is treated as an empty payload."""
    if not raw_body:
        return {}
    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _respond(result: CheckInResult) -> JSONResponse:
    return JSONResponse(status_code=result.http_status, content=result.to_response())


async def _run(
    orchestrator: CheckInOrchestrator,
    event_id: str | None,
    attendee_id: str | None,
    check_in_time: str | None,
    source: str,
) -> JSONResponse:
    try:
        result = await orchestrator.handle_check_in(event_id, attendee_id, check_in_time)
    except Exception as e:
        logger.exception(
            "checkin.unexpected_error",
            source=source,
            event_id=event_id,
            attendee_id=attendee_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": INTERNAL_ERROR_MESSAGE},
        )

    logger.info(
        "checkin.responded",
        source=source,
        state=result.state.value,
        reason=result.reason.value if result.reason else None,
        token_id=result.token_id,
    )
    return _respond(result)


@router.post("/webhook/check-in")
async def receive_check_in_webhook(
    raw_body: bytes = Depends(validate_webhook_signature),
    orchestrator: CheckInOrchestrator = Depends(get_orchestrator),
):
    """Receive a Luma check-in notification.

    Malformed or incomplete payloads are reported by the orchestrator as
    "Invalid check-in data" with 400, so Luma sees a uniform response shape.
    """
    payload = _parse_body(raw_body)
    return await _run(
        orchestrator,
        _as_text(payload.get("eventId")),
        _as_text(payload.get("attendeeId")),
        _as_text(payload.get("checkInTime")),
        source="webhook",
    )


@router.post("/manual-check-in")
async def manual_check_in(
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    orchestrator: CheckInOrchestrator = Depends(get_orchestrator),
):
    """Check an attendee in on behalf of the door staff.

    checkInTime defaults to the current UTC time.
    """
    payload = _parse_body(await request.body())
    event_id = _as_text(payload.get("eventId"))
    attendee_id = _as_text(payload.get("attendeeId"))
    if not event_id or not attendee_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Missing required parameters: eventId, attendeeId"},
        )

    check_in_time = _as_text(payload.get("checkInTime")) or utcnow().isoformat() + "Z"

    logger.info(
        "checkin.manual_requested",
        event_id=event_id,
        attendee_id=attendee_id,
        admin=claims.get("sub"),
    )
    return await _run(orchestrator, event_id, attendee_id, check_in_time, source="manual")
