from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import Bus, PhotoStorage
from app.api.v1.schemas.events import (
    EventDraftCreate,
    EventDraftUpdate,
    EventListOut,
    EventLiveCreate,
    EventOut,
    IntentCardOut,
    InviteIn,
    InviteOut,
    ParticipantListOut,
    ParticipantOut,
)
from app.api.v1.schemas.intent_cards import INTENT_CARDS
from app.auth.deps import CurrentUser, OptionalUser
from app.core.config import settings
from app.db import get_db
from app.models import Event
from app.models.base import utcnow
from app.models.event import EventStatus
from app.services import discovery_service, lifecycle_service, participation_service
from app.services.discovery_service import DiscoveryOrder

router = APIRouter(prefix="/events", tags=["events"])

DBSession = Annotated[Session, Depends(get_db)]


def to_event_out(
    event: Event,
    now: datetime | None = None,
    distance_m: float | None = None,
) -> EventOut:
    out = EventOut.model_validate(event)
    update: dict = {}
    if distance_m is not None:
        update["distance_m"] = round(distance_m, 1)
    # A live event past its end_time reads as ended until the sweep catches up
    if event.is_expired(now or utcnow()):
        update.update(status=EventStatus.ENDED, is_active=False)
    return out.model_copy(update=update) if update else out


@router.get("/intent-cards", response_model=list[IntentCardOut])
def list_intent_cards():
    return INTENT_CARDS


@router.post("/draft", response_model=EventOut)
def create_draft(payload: EventDraftCreate, user: CurrentUser, db: DBSession, bus: Bus):
    event = lifecycle_service.create_draft(db, user, payload, bus=bus)
    return to_event_out(event)


@router.post("", response_model=EventOut)
def create_live(payload: EventLiveCreate, user: CurrentUser, db: DBSession, bus: Bus):
    event = lifecycle_service.create_live(db, user, payload, bus=bus)
    return to_event_out(event)


@router.get("", response_model=EventListOut)
def discover_events(
    db: DBSession,
    viewer: OptionalUser,
    lat: float | None = Query(default=None),
    lng: float | None = Query(default=None),
    radius: float | None = Query(default=None, description="metres"),
    order: DiscoveryOrder = Query(default=DiscoveryOrder.RECENT),
):
    now = utcnow()
    found = discovery_service.discover(
        db,
        viewer,
        latitude=lat,
        longitude=lng,
        radius_m=radius,
        order=order,
        now=now,
    )
    items = [to_event_out(f.event, now=now, distance_m=f.distance_m) for f in found]
    return EventListOut(items=items, count=len(items))


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: uuid.UUID, db: DBSession, viewer: OptionalUser):
    event = discovery_service.get_visible(db, viewer, event_id)
    return to_event_out(event)


@router.patch("/{event_id}", response_model=EventOut)
def update_draft(
    event_id: uuid.UUID,
    patch: EventDraftUpdate,
    user: CurrentUser,
    db: DBSession,
    bus: Bus,
):
    event = lifecycle_service.update_draft(db, user, event_id, patch, bus=bus)
    return to_event_out(event)


@router.put("/{event_id}/publish", response_model=EventOut)
def publish_event(event_id: uuid.UUID, user: CurrentUser, db: DBSession, bus: Bus):
    event = lifecycle_service.publish(db, user, event_id, bus=bus)
    return to_event_out(event)


@router.put("/{event_id}/end", response_model=EventOut)
def end_event(event_id: uuid.UUID, user: CurrentUser, db: DBSession, bus: Bus):
    event = lifecycle_service.end(db, user, event_id, bus=bus)
    return to_event_out(event)


@router.delete("/{event_id}")
def delete_event(
    event_id: uuid.UUID,
    user: CurrentUser,
    db: DBSession,
    storage: PhotoStorage,
    bus: Bus,
):
    lifecycle_service.delete(db, user, event_id, storage=storage, bus=bus)
    return {"status": "deleted", "event_id": str(event_id)}


@router.post("/{event_id}/photo", response_model=EventOut)
def upload_photo(
    event_id: uuid.UUID,
    user: CurrentUser,
    db: DBSession,
    storage: PhotoStorage,
    file: UploadFile = File(...),
):
    try:
        # One byte over the limit is enough for the service to reject it
        data = file.file.read(settings.photo_max_upload_bytes + 1)
    finally:
        file.file.close()
    event = lifecycle_service.attach_photo(db, user, event_id, data, file.content_type, storage)
    return to_event_out(event)


@router.post("/{event_id}/invites", response_model=InviteOut)
def invite_user(event_id: uuid.UUID, payload: InviteIn, user: CurrentUser, db: DBSession):
    return lifecycle_service.invite(db, user, event_id, payload.user_id)


@router.post("/{event_id}/join", response_model=EventOut)
def join_event(event_id: uuid.UUID, user: CurrentUser, db: DBSession, bus: Bus):
    event = participation_service.join(db, user, event_id, bus=bus)
    return to_event_out(event)


@router.delete("/{event_id}/join", response_model=EventOut)
def leave_event(event_id: uuid.UUID, user: CurrentUser, db: DBSession, bus: Bus):
    event = participation_service.leave(db, user, event_id, bus=bus)
    return to_event_out(event)


@router.get("/{event_id}/participants", response_model=ParticipantListOut)
def list_participants(event_id: uuid.UUID, db: DBSession, viewer: OptionalUser):
    rows = participation_service.list_participants(db, viewer, event_id)
    return ParticipantListOut(
        event_id=event_id,
        items=[ParticipantOut.model_validate(row) for row in rows],
    )
