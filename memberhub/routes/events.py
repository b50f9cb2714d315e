"""Event routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth.identity import Identity, get_identity
from ..config import Settings
from ..dependencies import get_app_settings, get_event_service, page_limit
from ..errors import Forbidden
from ..models.event import Event, EventCreate, EventPage, RsvpRequest
from ..services.event_service import EventService

router = APIRouter()


def _rsvp_member(data: Optional[RsvpRequest], identity: Identity) -> str:
    """Member the RSVP is for: the caller unless an admin names someone else"""
    member_id = data.member_id if data and data.member_id else identity.subject
    if not identity.can_act_for(member_id):
        raise Forbidden("You can only RSVP on your own behalf")
    return member_id


@router.get("", response_model=EventPage)
async def list_events(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    service: EventService = Depends(get_event_service),
    settings: Settings = Depends(get_app_settings),
):
    """List events ordered by date"""
    return service.list_events(page, page_limit(limit, settings.events_page_size, settings))


@router.post("", status_code=201, response_model=Event)
async def create_event(
    data: EventCreate,
    identity: Identity = Depends(get_identity),
    service: EventService = Depends(get_event_service),
):
    return service.create_event(data, identity)


@router.get("/{event_id}", response_model=Event)
async def get_event(
    event_id: str,
    identity: Identity = Depends(get_identity),
    service: EventService = Depends(get_event_service),
):
    return service.get_event(event_id)


@router.post("/{event_id}/rsvp", response_model=Event)
async def rsvp_event(
    event_id: str,
    data: Optional[RsvpRequest] = None,
    identity: Identity = Depends(get_identity),
    service: EventService = Depends(get_event_service),
):
    """RSVP to an event"""
    return await service.rsvp(event_id, _rsvp_member(data, identity))


@router.delete("/{event_id}/rsvp", response_model=Event)
async def cancel_rsvp(
    event_id: str,
    data: Optional[RsvpRequest] = None,
    identity: Identity = Depends(get_identity),
    service: EventService = Depends(get_event_service),
):
    """Cancel an RSVP; succeeds even if the member was not attending"""
    return await service.cancel_rsvp(event_id, _rsvp_member(data, identity))
