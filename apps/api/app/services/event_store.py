"""Persistence primitives for mingles.

Every status change goes through :func:`compare_and_set`, a single
``UPDATE ... WHERE id = :id AND status = :expected`` statement, so two
concurrent transitions on the same event can never both succeed. Functions
here never commit unless their name says so; callers own the transaction.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from app.models import Event, EventParticipant
from app.models.event import EventPrivacy, EventStatus
from app.services.error_codes import ErrorCode
from app.services.exceptions import NotFoundError, StorageUnavailableError

logger = structlog.get_logger(__name__)


@contextmanager
def storage_guard(db: Session) -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.error("storage_unavailable", error=type(exc.orig).__name__ if exc.orig else str(exc))
        raise StorageUnavailableError(
            ErrorCode.STORAGE_UNAVAILABLE.value, "storage is temporarily unavailable"
        ) from exc


def create(db: Session, event: Event) -> Event:
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def find(db: Session, event_id: uuid.UUID) -> Event | None:
    return db.get(Event, event_id, populate_existing=True)


def get(db: Session, event_id: uuid.UUID) -> Event:
    event = find(db, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    return event


def compare_and_set(
    db: Session,
    event_id: uuid.UUID,
    expected: EventStatus,
    values: dict[str, Any],
    owner_id: uuid.UUID | None = None,
    extra_where: Sequence[Any] = (),
) -> bool:
    stmt = (
        update(Event)
        .where(Event.id == event_id, Event.status == expected, *extra_where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if owner_id is not None:
        stmt = stmt.where(Event.owner_id == owner_id)
    return db.execute(stmt).rowcount == 1


def update_fields(db: Session, event_id: uuid.UUID, values: dict[str, Any]) -> bool:
    """Last-writer-wins update of non-status fields."""
    if "status" in values:
        raise ValueError("status changes must go through compare_and_set")
    stmt = (
        update(Event)
        .where(Event.id == event_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def clear_participants(db: Session, event_id: uuid.UUID) -> int:
    result = db.execute(
        delete(EventParticipant)
        .where(EventParticipant.event_id == event_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def query(
    db: Session,
    statuses: Sequence[EventStatus] | None = None,
    privacies: Sequence[EventPrivacy] | None = None,
    bounds: tuple[float, float, float | None, float | None] | None = None,
    live_at: datetime | None = None,
    newest_first: bool = True,
    limit: int | None = None,
) -> list[Event]:
    stmt = select(Event)
    if statuses:
        stmt = stmt.where(Event.status.in_(list(statuses)))
    if privacies:
        stmt = stmt.where(Event.privacy.in_(list(privacies)))
    if bounds:
        min_lat, max_lat, min_lng, max_lng = bounds
        stmt = stmt.where(Event.latitude >= min_lat, Event.latitude <= max_lat)
        if min_lng is not None and max_lng is not None:
            stmt = stmt.where(Event.longitude >= min_lng, Event.longitude <= max_lng)
    if live_at is not None:
        stmt = stmt.where(Event.end_time > live_at)
    order = Event.created_at.desc() if newest_first else Event.created_at.asc()
    stmt = stmt.order_by(order, Event.id)
    if limit:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt).all())


def delete_event(db: Session, event_id: uuid.UUID, owner_id: uuid.UUID | None = None) -> bool:
    stmt = delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False)
    if owner_id is not None:
        stmt = stmt.where(Event.owner_id == owner_id)
    return (db.execute(stmt).rowcount or 0) == 1
