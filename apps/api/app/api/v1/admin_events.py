from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import Bus, PhotoStorage
from app.api.v1.events import to_event_out
from app.api.v1.schemas.events import EventListOut, SweepOut
from app.auth.deps import require_role
from app.db import get_db
from app.models.event import EventStatus
from app.models.user import UserRole
from app.services import event_store, lifecycle_service

router = APIRouter(
    prefix="/admin/events",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)

DBSession = Annotated[Session, Depends(get_db)]


@router.get("", response_model=EventListOut)
def list_events(
    db: DBSession,
    status: EventStatus | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
):
    events = event_store.query(db, statuses=[status] if status else None, limit=limit)
    items = [to_event_out(e) for e in events]
    return EventListOut(items=items, count=len(items))


@router.post("/sweep", response_model=SweepOut)
def run_sweep(db: DBSession, storage: PhotoStorage, bus: Bus):
    ended = lifecycle_service.sweep_expired(db, bus=bus)
    purged = lifecycle_service.purge_ended(db, storage=storage, bus=bus)
    return SweepOut(ended=ended, purged=purged)
