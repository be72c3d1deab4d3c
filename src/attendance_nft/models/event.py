"""Event entity - an admin-registered event linked to a Luma event."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from attendance_nft.core.timezone import utcnow


class Event(SQLModel, table=True):
    """Event registered by an admin; check-ins are only honoured for these.

    The Luma identifier is unique and never changes after creation.
    """

    __tablename__ = "events"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    luma_event_id: str = Field(max_length=255, unique=True, index=True)
    name: str = Field(max_length=255)
    date: str = Field(max_length=64, index=True)
    location: str = Field(max_length=255)
    organizer: str = Field(max_length=255, index=True)
    description: str = Field(default="")
    image_url: str = Field(default="", max_length=1024)
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
