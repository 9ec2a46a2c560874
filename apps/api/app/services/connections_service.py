from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Protocol

import structlog
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Connection, User
from app.models.connection import ConnectionStatus
from app.services.error_codes import ErrorCode
from app.services.event_store import storage_guard
from app.services.exceptions import (
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)

logger = structlog.get_logger(__name__)


class ConnectionLookup(Protocol):
    def status(self, viewer_id: uuid.UUID, owner_id: uuid.UUID) -> ConnectionStatus: ...


def _pair_clause(a: uuid.UUID, b: uuid.UUID):
    return or_(
        and_(Connection.requester_id == a, Connection.addressee_id == b),
        and_(Connection.requester_id == b, Connection.addressee_id == a),
    )


def _combine(statuses: Iterable[ConnectionStatus]) -> ConnectionStatus:
    found = set(statuses)
    if ConnectionStatus.BLOCKED in found:
        return ConnectionStatus.BLOCKED
    if ConnectionStatus.ACCEPTED in found:
        return ConnectionStatus.ACCEPTED
    if ConnectionStatus.PENDING in found:
        return ConnectionStatus.PENDING
    return ConnectionStatus.NONE


def connection_status(db: Session, viewer_id: uuid.UUID, owner_id: uuid.UUID) -> ConnectionStatus:
    if viewer_id == owner_id:
        return ConnectionStatus.NONE
    rows = db.scalars(select(Connection.status).where(_pair_clause(viewer_id, owner_id))).all()
    return _combine(rows)


class DatabaseConnectionLookup:
    """Connection lookups for a single request, memoised per owner."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._cache: dict[tuple[uuid.UUID, uuid.UUID], ConnectionStatus] = {}

    def prefetch(self, viewer_id: uuid.UUID, owner_ids: Iterable[uuid.UUID]) -> None:
        owners = {o for o in owner_ids if o != viewer_id}
        if not owners:
            return
        rows = self._db.execute(
            select(Connection.requester_id, Connection.addressee_id, Connection.status).where(
                or_(
                    and_(Connection.requester_id == viewer_id, Connection.addressee_id.in_(owners)),
                    and_(Connection.addressee_id == viewer_id, Connection.requester_id.in_(owners)),
                )
            )
        ).all()
        found: dict[uuid.UUID, list[ConnectionStatus]] = {o: [] for o in owners}
        for requester_id, addressee_id, status in rows:
            other = addressee_id if requester_id == viewer_id else requester_id
            found[other].append(status)
        for owner_id, statuses in found.items():
            self._cache[(viewer_id, owner_id)] = _combine(statuses)

    def status(self, viewer_id: uuid.UUID, owner_id: uuid.UUID) -> ConnectionStatus:
        key = (viewer_id, owner_id)
        if key not in self._cache:
            self._cache[key] = connection_status(self._db, viewer_id, owner_id)
        return self._cache[key]


def _find_pair(db: Session, a: uuid.UUID, b: uuid.UUID) -> list[Connection]:
    return list(db.scalars(select(Connection).where(_pair_clause(a, b))).all())


def list_connections(db: Session, user: User) -> list[Connection]:
    return list(
        db.scalars(
            select(Connection)
            .where(
                or_(Connection.requester_id == user.id, Connection.addressee_id == user.id),
                Connection.status == ConnectionStatus.ACCEPTED,
            )
            .order_by(Connection.updated_at.desc())
        ).all()
    )


def request_connection(db: Session, user: User, addressee_id: uuid.UUID) -> Connection:
    if addressee_id == user.id:
        raise InvalidArgumentError(ErrorCode.INVALID_ARGUMENT.value, "cannot connect with yourself")

    with storage_guard(db):
        if db.get(User, addressee_id) is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND.value, "user not found")

        for existing in _find_pair(db, user.id, addressee_id):
            if existing.status == ConnectionStatus.BLOCKED:
                raise InvalidTransitionError(ErrorCode.INVALID_TRANSITION.value, "connection is blocked")
            if existing.status == ConnectionStatus.ACCEPTED:
                return existing
            if existing.requester_id == addressee_id:
                # They already asked us: treat our request as acceptance
                return _accept(db, existing)
            return existing

        connection = Connection(
            requester_id=user.id,
            addressee_id=addressee_id,
            status=ConnectionStatus.PENDING,
        )
        db.add(connection)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            pair = _find_pair(db, user.id, addressee_id)
            if pair:
                return pair[0]
            raise
        db.refresh(connection)

    logger.info("connection_requested", requester_id=str(user.id), addressee_id=str(addressee_id))
    return connection


def _accept(db: Session, connection: Connection) -> Connection:
    changed = db.execute(
        update(Connection)
        .where(Connection.id == connection.id, Connection.status == ConnectionStatus.PENDING)
        .values(status=ConnectionStatus.ACCEPTED)
        .execution_options(synchronize_session=False)
    ).rowcount
    if changed != 1:
        db.rollback()
        raise InvalidTransitionError(ErrorCode.INVALID_TRANSITION.value, "connection is not pending")
    db.commit()
    db.refresh(connection)
    logger.info("connection_accepted", connection_id=str(connection.id))
    return connection


def accept_connection(db: Session, user: User, connection_id: uuid.UUID) -> Connection:
    with storage_guard(db):
        connection = db.get(Connection, connection_id, populate_existing=True)
        if connection is None:
            raise NotFoundError(ErrorCode.CONNECTION_NOT_FOUND.value, "connection not found")
        if connection.addressee_id != user.id:
            raise UnauthorizedError(ErrorCode.UNAUTHORIZED.value, "only the addressee can accept")
        return _accept(db, connection)


def block_user(db: Session, user: User, other_id: uuid.UUID) -> Connection:
    if other_id == user.id:
        raise InvalidArgumentError(ErrorCode.INVALID_ARGUMENT.value, "cannot block yourself")

    with storage_guard(db):
        if db.get(User, other_id) is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND.value, "user not found")

        pair = _find_pair(db, user.id, other_id)
        if pair:
            connection = pair[0]
            connection.status = ConnectionStatus.BLOCKED
            for extra in pair[1:]:
                db.delete(extra)
        else:
            connection = Connection(
                requester_id=user.id,
                addressee_id=other_id,
                status=ConnectionStatus.BLOCKED,
            )
            db.add(connection)
        db.commit()
        db.refresh(connection)

    logger.info("connection_blocked", user_id=str(user.id), blocked_id=str(other_id))
    return connection
