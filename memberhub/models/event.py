"""Event models"""

from pydantic import Field
from typing import Optional, List

from .common import CamelModel, Page


class EventCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    date: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, max_length=200)
    max_attendees: int = Field(..., ge=1)


class RsvpRequest(CamelModel):
    member_id: Optional[str] = None


class Event(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    date: str
    location: str
    max_attendees: int
    attendees: List[str] = []
    attendee_count: int = 0
    created_by: Optional[str] = None
    created_at: str


class EventPage(Page):
    events: List[Event]
