"""Events and the RSVP state machine"""

import logging

from ..auth.identity import Identity
from ..errors import CapacityError, DuplicateError, NotFoundError
from ..models.event import EventCreate
from .broadcast import EVENT_UPDATE, Broadcaster
from .database import Database
from .locks import KeyedLocks

logger = logging.getLogger(__name__)


def with_attendee_count(event: dict) -> dict:
    return {**event, "attendeeCount": len(event.get("attendees", []))}


class EventService:
    """Event CRUD plus RSVP/cancel.

    Per (event, member) pair the state is either attending or not. RSVP and
    cancel are serialized per event id, so the capacity and duplicate checks
    always see the attendee list they write back and eventUpdate counts are
    published in write order. The locks only cover this process; several
    uvicorn workers sharing one store are not coordinated, even with the
    Redis relay enabled.
    """

    def __init__(self, db: Database, broadcaster: Broadcaster, locks: KeyedLocks = None):
        self.db = db
        self.broadcaster = broadcaster
        self.locks = locks or KeyedLocks()

    def list_events(self, page: int, limit: int) -> dict:
        events, total, total_pages = self.db.page(
            "events", page, limit, sort_key=lambda e: e.get("date") or "",
        )
        return {
            "events": [with_attendee_count(e) for e in events],
            "total": total,
            "totalPages": total_pages,
            "page": page,
            "limit": limit,
        }

    def get_event(self, event_id: str) -> dict:
        event = self.db.get("events", event_id)
        if not event:
            raise NotFoundError("Event not found")
        return with_attendee_count(event)

    def create_event(self, data: EventCreate, identity: Identity) -> dict:
        event = {
            "id": self.db.generate_id(),
            **data.to_document(),
            "attendees": [],
            "createdBy": identity.subject,
            "createdAt": self.db.timestamp(),
        }
        self.db.insert("events", event)
        logger.info(f"Event {event['id']} created by {identity.subject}")
        return with_attendee_count(event)

    async def rsvp(self, event_id: str, member_id: str) -> dict:
        async with self.locks.hold(event_id):
            event = self.db.get("events", event_id)
            if not event:
                raise NotFoundError("Event not found")

            attendees = list(event.get("attendees", []))
            if len(attendees) >= event["maxAttendees"]:
                raise CapacityError()
            if member_id in attendees:
                raise DuplicateError()

            attendees.append(member_id)
            updated = self.db.update("events", event_id, {"attendees": attendees})
            if updated is None:
                raise NotFoundError("Event not found")

            logger.info(f"Member {member_id} RSVP'd to event {event_id} ({len(attendees)}/{event['maxAttendees']})")
            await self._publish_update(updated)

        return with_attendee_count(updated)

    async def cancel_rsvp(self, event_id: str, member_id: str) -> dict:
        """Remove the member if present; cancelling twice is not an error"""
        async with self.locks.hold(event_id):
            event = self.db.get("events", event_id)
            if not event:
                raise NotFoundError("Event not found")

            attendees = [a for a in event.get("attendees", []) if a != member_id]
            updated = self.db.update("events", event_id, {"attendees": attendees})
            if updated is None:
                raise NotFoundError("Event not found")

            logger.info(f"Member {member_id} cancelled RSVP for event {event_id}")
            await self._publish_update(updated)

        return with_attendee_count(updated)

    async def _publish_update(self, event: dict):
        await self.broadcaster.publish("events", EVENT_UPDATE, {
            "eventId": event["id"],
            "attendeeCount": len(event.get("attendees", [])),
        })
