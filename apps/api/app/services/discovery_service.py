from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import Event, EventInvite, User
from app.models.base import utcnow
from app.models.connection import ConnectionStatus
from app.models.event import EventPrivacy, EventStatus
from app.services import event_store
from app.services.connections_service import ConnectionLookup, DatabaseConnectionLookup
from app.services.error_codes import ErrorCode
from app.services.exceptions import InvalidArgumentError, NotFoundError
from app.services.geo import bounding_box, haversine_m

logger = structlog.get_logger(__name__)


class DiscoveryOrder(str, Enum):
    RECENT = "recent"
    DISTANCE = "distance"


@dataclass(frozen=True)
class GeoQuery:
    latitude: float
    longitude: float
    radius_m: float


@dataclass(frozen=True)
class DiscoveredEvent:
    event: Event
    distance_m: float | None


def _invalid(message: str) -> InvalidArgumentError:
    return InvalidArgumentError(ErrorCode.INVALID_COORDINATES.value, message)


def parse_geo_query(
    latitude: float | None,
    longitude: float | None,
    radius_m: float | None,
) -> GeoQuery | None:
    if latitude is None and longitude is None:
        if radius_m is not None:
            raise _invalid("radius requires lat and lng")
        return None
    if latitude is None or longitude is None:
        raise _invalid("lat and lng must be supplied together")
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise _invalid("coordinates must be finite numbers")
    if not -90 <= latitude <= 90:
        raise _invalid("lat must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise _invalid("lng must be between -180 and 180")

    if radius_m is None:
        radius_m = settings.discovery_default_radius_m
    if not math.isfinite(radius_m) or radius_m <= 0:
        raise _invalid("radius must be a positive number of metres")
    return GeoQuery(latitude, longitude, min(radius_m, settings.discovery_max_radius_m))


def _invited_event_ids(db: Session, viewer_id: uuid.UUID, event_ids: list[uuid.UUID]) -> set[uuid.UUID]:
    if not event_ids:
        return set()
    return set(
        db.scalars(
            select(EventInvite.event_id).where(
                EventInvite.user_id == viewer_id,
                EventInvite.event_id.in_(event_ids),
            )
        ).all()
    )


def can_view(
    db: Session,
    viewer: User | None,
    event: Event,
    connections: ConnectionLookup | None = None,
    invited: bool | None = None,
) -> bool:
    """Whether ``viewer`` may see ``event`` at all, ignoring expiry."""
    if viewer is not None and viewer.id == event.owner_id:
        return True
    if event.status == EventStatus.DRAFT:
        return False
    if viewer is None:
        return event.privacy == EventPrivacy.PUBLIC

    connections = connections or DatabaseConnectionLookup(db)
    relation = connections.status(viewer.id, event.owner_id)
    if relation == ConnectionStatus.BLOCKED:
        return False

    if event.privacy == EventPrivacy.PUBLIC:
        return True
    if event.privacy == EventPrivacy.FRIENDS:
        return relation == ConnectionStatus.ACCEPTED
    if event.privacy == EventPrivacy.PRIVATE:
        if invited is None:
            invited = bool(_invited_event_ids(db, viewer.id, [event.id]))
        return invited
    return False


def discover(
    db: Session,
    viewer: User | None,
    latitude: float | None = None,
    longitude: float | None = None,
    radius_m: float | None = None,
    order: DiscoveryOrder = DiscoveryOrder.RECENT,
    connections: ConnectionLookup | None = None,
    now: datetime | None = None,
) -> list[DiscoveredEvent]:
    geo = parse_geo_query(latitude, longitude, radius_m)
    if order == DiscoveryOrder.DISTANCE and geo is None:
        raise _invalid("distance ordering requires lat and lng")

    now = now or utcnow()
    try:
        return _discover(db, viewer, geo, order, connections, now)
    except SQLAlchemyError as exc:
        # Never let a failure tell the caller anything about hidden events
        db.rollback()
        logger.warning("mingle_discovery_failed", error=type(exc).__name__)
        return []


def _discover(
    db: Session,
    viewer: User | None,
    geo: GeoQuery | None,
    order: DiscoveryOrder,
    connections: ConnectionLookup | None,
    now: datetime,
) -> list[DiscoveredEvent]:
    candidates = event_store.query(
        db,
        statuses=[EventStatus.LIVE],
        privacies=[EventPrivacy.PUBLIC] if viewer is None else None,
        bounds=bounding_box(geo.latitude, geo.longitude, geo.radius_m) if geo else None,
        live_at=now,
        newest_first=True,
    )

    results: list[DiscoveredEvent] = []
    for event in candidates:
        distance = None
        if geo is not None:
            distance = haversine_m(geo.latitude, geo.longitude, event.latitude, event.longitude)
            if distance > geo.radius_m:
                continue
        results.append(DiscoveredEvent(event, distance))

    if viewer is not None and results:
        if connections is None:
            lookup = DatabaseConnectionLookup(db)
            lookup.prefetch(viewer.id, {r.event.owner_id for r in results})
            connections = lookup
        invited = _invited_event_ids(
            db,
            viewer.id,
            [r.event.id for r in results if r.event.privacy == EventPrivacy.PRIVATE],
        )
        results = [
            r
            for r in results
            if can_view(db, viewer, r.event, connections, invited=r.event.id in invited)
        ]

    if order == DiscoveryOrder.DISTANCE:
        results.sort(key=lambda r: r.distance_m)
    return results[: settings.discovery_max_results]


def get_visible(
    db: Session,
    viewer: User | None,
    event_id: uuid.UUID,
    connections: ConnectionLookup | None = None,
) -> Event:
    event = event_store.get(db, event_id)
    if not can_view(db, viewer, event, connections):
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "event not found")
    return event
