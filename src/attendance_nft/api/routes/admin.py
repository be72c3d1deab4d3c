"""Admin API endpoints for event registration and mint reporting.

All endpoints require an admin bearer token:
- GET    /api/admin/events - List events (filters: active, organizer, startDate, endDate)
- GET    /api/admin/events/{event_id} - Event details
- POST   /api/admin/events - Register a Luma event for attendance NFTs
- PUT    /api/admin/events/{event_id} - Update event details (lumaEventId is immutable)
- DELETE /api/admin/events/{event_id} - Remove an event
- GET    /api/admin/events/{event_id}/stats - Mint totals and most recent mints
- GET    /api/admin/events/{event_id}/mints - Mint records for an event
- GET    /api/admin/mints?email= - Mint records for an attendee
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from attendance_nft.api.dependencies import get_ledger, get_uow_factory, require_admin
from attendance_nft.models.event import Event
from attendance_nft.models.mint_record import MintRecord
from attendance_nft.services.ledger import MintLedger

logger = structlog.get_logger()
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

RECENT_MINTS_LIMIT = 10
REQUIRED_EVENT_FIELDS = ("name", "date", "location", "luma_event_id", "organizer")


# Request/Response Models


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCreateRequest(CamelModel):
    """Request model for registering an event.

    Required fields are checked by the endpoint so that a missing field yields
    a 400 with the field names rather than a validation error body.
    """

    name: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    luma_event_id: Optional[str] = None
    organizer: Optional[str] = None
    description: str = ""
    image_url: str = ""
    active: bool = True


class EventUpdateRequest(CamelModel):
    """Request model for partial event updates."""

    name: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    organizer: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    active: Optional[bool] = None
    # Accepted and ignored; the Luma identifier never changes
    luma_event_id: Optional[str] = None


class EventDTO(CamelModel):
    id: UUID
    luma_event_id: str
    name: str
    date: str
    location: str
    organizer: str
    description: str
    image_url: str
    active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, event: Event) -> "EventDTO":
        return cls.model_validate(event.model_dump())


class MintRecordDTO(CamelModel):
    token_id: int = Field(..., description="On-chain token ID")
    event_id: UUID
    attendee_email: str
    wallet_address: str
    tx_hash: Optional[str] = Field(default=None, description="Mint transaction hash")
    minted_at: datetime

    @classmethod
    def from_model(cls, record: MintRecord) -> "MintRecordDTO":
        return cls.model_validate(record.model_dump())


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


async def _get_event_or_404(uow_factory, event_id: UUID) -> Event:
    async with await uow_factory() as uow:
        event = await uow.events.get_by_id(event_id)
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


# Events


@router.get("/events")
async def list_events(
    active: Optional[bool] = Query(default=None),
    organizer: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    uow_factory=Depends(get_uow_factory),
) -> dict[str, Any]:
    async with await uow_factory() as uow:
        events = await uow.events.list_all(
            active=active, organizer=organizer, start_date=start_date, end_date=end_date
        )
    return {"success": True, "events": [_dump(EventDTO.from_model(e)) for e in events]}


@router.get("/events/{event_id}")
async def get_event(event_id: UUID, uow_factory=Depends(get_uow_factory)) -> dict[str, Any]:
    event = await _get_event_or_404(uow_factory, event_id)
    return {"success": True, "event": _dump(EventDTO.from_model(event))}


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(request: EventCreateRequest, uow_factory=Depends(get_uow_factory)):
    """Register a Luma event so its check-ins produce attendance NFTs.

    Returns:
        201 with the created event, 400 when required fields are missing,
        409 when the Luma event is already registered
    """
    missing = [
        to_camel(name) for name in REQUIRED_EVENT_FIELDS if not getattr(request, name)
    ]
    if missing:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": f"Missing required fields: {', '.join(missing)}",
            },
        )

    async with await uow_factory() as uow:
        existing = await uow.events.get_by_luma_id(request.luma_event_id)  # type: ignore[arg-type]
        if existing is not None:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "success": False,
                    "message": "Event with this Luma ID already exists",
                    "eventId": str(existing.id),
                },
            )

        event = await uow.events.add(
            Event(
                luma_event_id=request.luma_event_id,  # type: ignore[arg-type]
                name=request.name,  # type: ignore[arg-type]
                date=request.date,  # type: ignore[arg-type]
                location=request.location,  # type: ignore[arg-type]
                organizer=request.organizer,  # type: ignore[arg-type]
                description=request.description,
                image_url=request.image_url,
                active=request.active,
            )
        )

    logger.info("admin.event_created", event_id=str(event.id), luma_event_id=event.luma_event_id)
    return {
        "success": True,
        "message": "Event created successfully",
        "event": _dump(EventDTO.from_model(event)),
    }


@router.put("/events/{event_id}")
async def update_event(
    event_id: UUID, request: EventUpdateRequest, uow_factory=Depends(get_uow_factory)
) -> dict[str, Any]:
    changes = {
        k: v
        for k, v in request.model_dump(exclude_unset=True, exclude={"luma_event_id"}).items()
        if v is not None
    }

    async with await uow_factory() as uow:
        event = await uow.events.get_by_id(event_id)
        if event is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
        event = await uow.events.update(event, changes)

    logger.info("admin.event_updated", event_id=str(event_id), fields=sorted(changes))
    return {
        "success": True,
        "message": "Event updated successfully",
        "event": _dump(EventDTO.from_model(event)),
    }


@router.delete("/events/{event_id}")
async def delete_event(event_id: UUID, uow_factory=Depends(get_uow_factory)) -> dict[str, Any]:
    async with await uow_factory() as uow:
        deleted = await uow.events.delete(event_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    logger.info("admin.event_deleted", event_id=str(event_id))
    return {"success": True, "message": "Event deleted successfully"}


# Mint reporting


@router.get("/events/{event_id}/stats")
async def get_event_stats(
    event_id: UUID,
    uow_factory=Depends(get_uow_factory),
    ledger: MintLedger = Depends(get_ledger),
) -> dict[str, Any]:
    event = await _get_event_or_404(uow_factory, event_id)
    total = await ledger.count_by_event(event.id)
    recent = await ledger.list_by_event(event.id, limit=RECENT_MINTS_LIMIT)
    return {
        "success": True,
        "stats": {
            "eventId": str(event.id),
            "eventName": event.name,
            "totalMints": total,
            "recentMints": [_dump(MintRecordDTO.from_model(r)) for r in recent],
        },
    }


@router.get("/events/{event_id}/mints")
async def list_event_mints(
    event_id: UUID,
    uow_factory=Depends(get_uow_factory),
    ledger: MintLedger = Depends(get_ledger),
) -> dict[str, Any]:
    await _get_event_or_404(uow_factory, event_id)
    records = await ledger.list_by_event(event_id)
    return {"success": True, "mints": [_dump(MintRecordDTO.from_model(r)) for r in records]}


@router.get("/mints")
async def list_attendee_mints(
    email: str = Query(..., min_length=1),
    ledger: MintLedger = Depends(get_ledger),
) -> dict[str, Any]:
    records = await ledger.list_by_attendee(email)
    return {"success": True, "mints": [_dump(MintRecordDTO.from_model(r)) for r in records]}
