"""Join and leave for live mingles.

The participant counter is only ever changed by the guarded UPDATE
statements below. The capacity check lives in the UPDATE's WHERE clause so
check and increment are one atomic step, and the Participant insert shares
its transaction: a duplicate join rolls the increment back with it.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import NoReturn

import structlog
from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Event, EventParticipant, User
from app.models.base import utcnow
from app.models.event import EventStatus
from app.notifications.bus import EventBus, LifecycleTopic
from app.services import event_store
from app.services.connections_service import ConnectionLookup
from app.services.discovery_service import can_view, get_visible
from app.services.error_codes import ErrorCode
from app.services.exceptions import (
    AlreadyJoinedError,
    CapacityExceededError,
    InvalidTransitionError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)


def _is_participant(db: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return (
        db.scalar(
            select(EventParticipant.id).where(
                EventParticipant.event_id == event_id,
                EventParticipant.user_id == user_id,
            )
        )
        is not None
    )


def _already_joined() -> AlreadyJoinedError:
    return AlreadyJoinedError(ErrorCode.ALREADY_JOINED.value, "already joined")


def _raise_join_rejection(db: Session, event_id: uuid.UUID, now: datetime) -> NoReturn:
    event = event_store.find(db, event_id)
    if event is None:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    if event.status != EventStatus.LIVE or event.end_time <= now:
        raise InvalidTransitionError(ErrorCode.EVENT_NOT_LIVE.value, "event is not live")
    raise CapacityExceededError(ErrorCode.CAPACITY_EXCEEDED.value, "event is full")


def join(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    connections: ConnectionLookup | None = None,
    bus: EventBus | None = None,
    now: datetime | None = None,
) -> Event:
    now = now or utcnow()

    with event_store.storage_guard(db):
        event = event_store.get(db, event_id)
        # Non-live events fall through to the guarded UPDATE and fail as a transition
        if event.status == EventStatus.LIVE and not can_view(db, user, event, connections):
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
        if _is_participant(db, event_id, user.id):
            raise _already_joined()

        admitted = db.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.LIVE,
                Event.end_time > now,
                Event.participant_count < Event.max_participants,
            )
            .values(participant_count=Event.participant_count + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        if admitted != 1:
            db.rollback()
            logger.info("mingle_join_rejected", event_id=str(event_id), user_id=str(user.id))
            _raise_join_rejection(db, event_id, now)

        db.add(EventParticipant(event_id=event_id, user_id=user.id, joined_at=now))
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise _already_joined() from exc

        event = event_store.get(db, event_id)

    logger.info(
        "mingle_joined",
        event_id=str(event_id),
        user_id=str(user.id),
        participant_count=event.participant_count,
    )
    if bus is not None:
        bus.publish(
            LifecycleTopic.JOINED,
            {"event_id": str(event_id), "user_id": str(user.id), "status": event.status.value},
        )
    return event


def leave(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    bus: EventBus | None = None,
) -> Event:
    with event_store.storage_guard(db):
        event_store.get(db, event_id)

        removed = db.execute(
            delete(EventParticipant)
            .where(EventParticipant.event_id == event_id, EventParticipant.user_id == user.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if removed:
            db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(
                    participant_count=case(
                        (Event.participant_count > 0, Event.participant_count - 1),
                        else_=0,
                    )
                )
                .execution_options(synchronize_session=False)
            )
        db.commit()
        event = event_store.get(db, event_id)

    if removed:
        logger.info("mingle_left", event_id=str(event_id), user_id=str(user.id))
        if bus is not None:
            bus.publish(
                LifecycleTopic.LEFT,
                {"event_id": str(event_id), "user_id": str(user.id), "status": event.status.value},
            )
    return event


def list_participants(
    db: Session,
    viewer: User | None,
    event_id: uuid.UUID,
    connections: ConnectionLookup | None = None,
) -> list[EventParticipant]:
    get_visible(db, viewer, event_id, connections)
    return list(
        db.scalars(
            select(EventParticipant)
            .where(EventParticipant.event_id == event_id)
            .order_by(EventParticipant.joined_at, EventParticipant.id)
        ).all()
    )
