"""Attendee value object supplied per check-in by the event platform."""

from dataclasses import dataclass
from typing import Optional


def normalize_email(email: str | None) -> str:
    """Canonical form of an email used as wallet and ledger key."""
    return (email or "").strip().lower()


@dataclass(frozen=True)
class Attendee:
    """Attendee as reported by Luma. Never persisted."""

    id: str
    name: str
    email: str
    check_in_status: Optional[str] = None
    registration_date: Optional[str] = None
