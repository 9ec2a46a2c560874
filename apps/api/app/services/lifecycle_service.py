from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, NoReturn

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.v1.schemas.events import EventDraftCreate, EventDraftUpdate, EventLiveCreate
from app.core.config import settings
from app.models import Event, EventInvite, User
from app.models.base import utcnow
from app.models.event import EventStatus
from app.notifications.bus import EventBus, LifecycleTopic
from app.services import event_store
from app.services.error_codes import ErrorCode
from app.services.exceptions import (
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    UnauthorizedError,
)
from app.storage.base import StorageAdapter, StorageError

logger = structlog.get_logger(__name__)

ALLOWED_PHOTO_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
SWEEP_BATCH_SIZE = 500


def default_duration() -> timedelta:
    return timedelta(minutes=settings.mingle_default_duration_minutes)


def _emit(bus: EventBus | None, topic: LifecycleTopic, event: Event, **extra: Any) -> None:
    if bus is None:
        return
    bus.publish(
        topic,
        {
            "event_id": str(event.id),
            "owner_id": str(event.owner_id),
            "status": event.status.value,
            **extra,
        },
    )


def _require_owner(user: User, event: Event) -> None:
    if event.owner_id != user.id:
        raise UnauthorizedError(ErrorCode.NOT_EVENT_OWNER.value, "only the owner can manage this event")


def _raise_transition_failure(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    expected: EventStatus,
) -> NoReturn:
    db.rollback()
    event = event_store.get(db, event_id)
    _require_owner(user, event)
    code = ErrorCode.EVENT_NOT_DRAFT if expected == EventStatus.DRAFT else ErrorCode.EVENT_NOT_LIVE
    raise InvalidTransitionError(
        code.value,
        f"event is {event.status.value}, expected {expected.value}",
    )


def _event_fields(payload: EventDraftCreate) -> dict[str, Any]:
    return {
        "title": payload.title,
        "description": payload.description,
        "tags": payload.tags,
        "intent_card": payload.intent_card,
        "latitude": payload.latitude,
        "longitude": payload.longitude,
        "location_name": payload.location_name,
        "max_participants": payload.max_participants,
        "privacy": payload.privacy,
    }


def create_draft(
    db: Session,
    owner: User,
    payload: EventDraftCreate,
    bus: EventBus | None = None,
    now: datetime | None = None,
) -> Event:
    now = now or utcnow()
    # Placeholder window; publish replaces it
    event = Event(
        owner_id=owner.id,
        status=EventStatus.DRAFT,
        start_time=now,
        end_time=now + default_duration(),
        participant_count=0,
        **_event_fields(payload),
    )
    with event_store.storage_guard(db):
        event_store.create(db, event)

    logger.info("mingle_draft_created", event_id=str(event.id), owner_id=str(owner.id))
    _emit(bus, LifecycleTopic.CREATED, event)
    return event


def create_live(
    db: Session,
    owner: User,
    payload: EventLiveCreate,
    bus: EventBus | None = None,
    now: datetime | None = None,
) -> Event:
    now = now or utcnow()
    start_time = payload.start_time or now
    end_time = payload.end_time or start_time + default_duration()
    if end_time <= start_time:
        raise InvalidArgumentError(ErrorCode.INVALID_TIME_WINDOW.value, "end_time must be after start_time")
    if end_time <= now:
        raise InvalidArgumentError(ErrorCode.INVALID_TIME_WINDOW.value, "end_time must be in the future")

    event = Event(
        owner_id=owner.id,
        status=EventStatus.LIVE,
        start_time=start_time,
        end_time=end_time,
        participant_count=0,
        **_event_fields(payload),
    )
    with event_store.storage_guard(db):
        event_store.create(db, event)

    logger.info("mingle_created_live", event_id=str(event.id), owner_id=str(owner.id))
    _emit(bus, LifecycleTopic.CREATED, event)
    return event


def update_draft(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    patch: EventDraftUpdate,
    bus: EventBus | None = None,
) -> Event:
    values = patch.model_dump(exclude_unset=True)

    with event_store.storage_guard(db):
        if not values:
            event = event_store.get(db, event_id)
            _require_owner(user, event)
            if event.status != EventStatus.DRAFT:
                raise InvalidTransitionError(
                    ErrorCode.EVENT_NOT_DRAFT.value, f"event is {event.status.value}, expected draft"
                )
            return event

        changed = event_store.compare_and_set(
            db, event_id, EventStatus.DRAFT, values, owner_id=user.id
        )
        if not changed:
            _raise_transition_failure(db, user, event_id, EventStatus.DRAFT)
        db.commit()
        event = event_store.get(db, event_id)

    logger.info("mingle_draft_updated", event_id=str(event_id), fields=sorted(values))
    _emit(bus, LifecycleTopic.UPDATED, event, fields=sorted(values))
    return event


def publish(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    bus: EventBus | None = None,
    now: datetime | None = None,
) -> Event:
    now = now or utcnow()
    values = {
        "status": EventStatus.LIVE,
        "start_time": now,
        "end_time": now + default_duration(),
        "ended_at": None,
    }
    with event_store.storage_guard(db):
        if not event_store.compare_and_set(db, event_id, EventStatus.DRAFT, values, owner_id=user.id):
            _raise_transition_failure(db, user, event_id, EventStatus.DRAFT)
        db.commit()
        event = event_store.get(db, event_id)

    logger.info("mingle_published", event_id=str(event_id), end_time=event.end_time.isoformat())
    _emit(bus, LifecycleTopic.PUBLISHED, event)
    return event


def end(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    bus: EventBus | None = None,
    now: datetime | None = None,
) -> Event:
    now = now or utcnow()
    values = {"status": EventStatus.ENDED, "ended_at": now, "participant_count": 0}
    with event_store.storage_guard(db):
        if not event_store.compare_and_set(db, event_id, EventStatus.LIVE, values, owner_id=user.id):
            _raise_transition_failure(db, user, event_id, EventStatus.LIVE)
        removed = event_store.clear_participants(db, event_id)
        db.commit()
        event = event_store.get(db, event_id)

    logger.info("mingle_ended", event_id=str(event_id), participants_removed=removed)
    _emit(bus, LifecycleTopic.ENDED, event, reason="owner")
    return event


def delete(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    storage: StorageAdapter | None = None,
    bus: EventBus | None = None,
) -> None:
    with event_store.storage_guard(db):
        event = event_store.get(db, event_id)
        _require_owner(user, event)
        photo_key = event.photo_key
        if not event_store.delete_event(db, event_id, owner_id=user.id):
            db.rollback()
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
        db.commit()

    if photo_key and storage is not None:
        _delete_photo_quietly(storage, photo_key)

    logger.info("mingle_deleted", event_id=str(event_id), owner_id=str(user.id))
    _emit(bus, LifecycleTopic.DELETED, event)


def attach_photo(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    data: bytes,
    content_type: str | None,
    storage: StorageAdapter,
) -> Event:
    content_type = (content_type or "").split(";")[0].strip().lower()
    extension = ALLOWED_PHOTO_TYPES.get(content_type)
    if extension is None:
        raise InvalidArgumentError(ErrorCode.INVALID_PHOTO.value, "photo must be jpeg, png or webp")
    if not data:
        raise InvalidArgumentError(ErrorCode.INVALID_PHOTO.value, "photo is empty")
    if len(data) > settings.photo_max_upload_bytes:
        raise InvalidArgumentError(
            ErrorCode.INVALID_PHOTO.value,
            f"photo exceeds max size of {settings.photo_max_upload_bytes} bytes",
        )

    with event_store.storage_guard(db):
        event = event_store.get(db, event_id)
        _require_owner(user, event)
        if event.status == EventStatus.ENDED:
            raise InvalidTransitionError(ErrorCode.INVALID_TRANSITION.value, "event has ended")
        previous_key = event.photo_key

    key = f"mingles/{event.owner_id}/{event.id}/{uuid.uuid4().hex}{extension}"
    try:
        url = storage.put(key, data, content_type)
    except StorageError as exc:
        logger.error("mingle_photo_upload_failed", event_id=str(event_id), key=key)
        raise StorageUnavailableError(
            ErrorCode.STORAGE_UNAVAILABLE.value, "photo storage is temporarily unavailable"
        ) from exc

    with event_store.storage_guard(db):
        if not event_store.update_fields(db, event_id, {"photo_key": key, "photo_url": url}):
            db.rollback()
            _delete_photo_quietly(storage, key)
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
        db.commit()
        event = event_store.get(db, event_id)

    if previous_key and previous_key != key:
        _delete_photo_quietly(storage, previous_key)

    logger.info("mingle_photo_attached", event_id=str(event_id), key=key)
    return event


def invite(
    db: Session,
    user: User,
    event_id: uuid.UUID,
    invitee_id: uuid.UUID,
) -> EventInvite:
    with event_store.storage_guard(db):
        event = event_store.get(db, event_id)
        _require_owner(user, event)
        if event.status == EventStatus.ENDED:
            raise InvalidTransitionError(ErrorCode.INVALID_TRANSITION.value, "event has ended")
        if invitee_id == user.id:
            raise InvalidArgumentError(ErrorCode.INVALID_ARGUMENT.value, "cannot invite yourself")
        if db.get(User, invitee_id) is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND.value, "user not found")

        existing = _find_invite(db, event_id, invitee_id)
        if existing:
            return existing

        invite_row = EventInvite(event_id=event_id, user_id=invitee_id, invited_by=user.id)
        db.add(invite_row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = _find_invite(db, event_id, invitee_id)
            if existing:
                return existing
            raise
        db.refresh(invite_row)

    logger.info("mingle_invite_sent", event_id=str(event_id), user_id=str(invitee_id))
    return invite_row


def _find_invite(db: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> EventInvite | None:
    return db.scalar(
        select(EventInvite).where(EventInvite.event_id == event_id, EventInvite.user_id == user_id)
    )


def _delete_photo_quietly(storage: StorageAdapter, key: str) -> None:
    try:
        storage.delete(key)
    except StorageError:
        # Orphaned objects are collected by bucket lifecycle rules
        logger.warning("mingle_photo_delete_failed", key=key)


def sweep_expired(
    db: Session,
    now: datetime | None = None,
    bus: EventBus | None = None,
) -> list[uuid.UUID]:
    """Move every live event whose window has closed to ``ended``.

    Readers already hide such events; this converges stored state with what
    they see. Each event goes through the same compare-and-set as an owner's
    ``end`` so a concurrent end or join cannot be overwritten.
    """
    now = now or utcnow()
    ended_ids: list[uuid.UUID] = []
    ended: list[Event] = []
    with event_store.storage_guard(db):
        candidates = db.scalars(
            select(Event.id)
            .where(Event.status == EventStatus.LIVE, Event.end_time <= now)
            .order_by(Event.end_time)
            .limit(SWEEP_BATCH_SIZE)
        ).all()
        for event_id in candidates:
            changed = event_store.compare_and_set(
                db,
                event_id,
                EventStatus.LIVE,
                {"status": EventStatus.ENDED, "ended_at": now, "participant_count": 0},
                extra_where=(Event.end_time <= now,),
            )
            if changed:
                event_store.clear_participants(db, event_id)
                ended_ids.append(event_id)
        db.commit()
        if ended_ids:
            ended = list(
                db.scalars(
                    select(Event)
                    .where(Event.id.in_(ended_ids))
                    .execution_options(populate_existing=True)
                ).all()
            )

    for event in ended:
        _emit(bus, LifecycleTopic.ENDED, event, reason="expired")
    if ended:
        logger.info("mingle_sweep_completed", ended=len(ended))
    return ended_ids


def purge_ended(
    db: Session,
    now: datetime | None = None,
    retention: timedelta | None = None,
    storage: StorageAdapter | None = None,
    bus: EventBus | None = None,
) -> list[uuid.UUID]:
    now = now or utcnow()
    retention = retention if retention is not None else timedelta(hours=settings.event_retention_hours)
    cutoff = now - retention

    with event_store.storage_guard(db):
        expired = db.scalars(
            select(Event)
            .where(Event.status == EventStatus.ENDED, Event.end_time < cutoff)
            .order_by(Event.end_time)
            .limit(SWEEP_BATCH_SIZE)
        ).all()
        purged = [(e.id, e.owner_id, e.photo_key) for e in expired]
        for event_id, _, _ in purged:
            event_store.delete_event(db, event_id)
        db.commit()

    for event_id, owner_id, photo_key in purged:
        if photo_key and storage is not None:
            _delete_photo_quietly(storage, photo_key)
        if bus is not None:
            bus.publish(
                LifecycleTopic.DELETED,
                {"event_id": str(event_id), "owner_id": str(owner_id), "reason": "retention"},
            )
    if purged:
        logger.info("mingle_purge_completed", purged=len(purged))
    return [event_id for event_id, _, _ in purged]
