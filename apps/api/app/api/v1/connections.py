from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.schemas.connections import ConnectionOut, ConnectionStatusOut
from app.auth.deps import CurrentUser
from app.db import get_db
from app.services import connections_service

router = APIRouter(prefix="/connections", tags=["connections"])

DBSession = Annotated[Session, Depends(get_db)]


@router.get("", response_model=list[ConnectionOut])
def list_connections(user: CurrentUser, db: DBSession):
    return connections_service.list_connections(db, user)


@router.get("/{user_id}/status", response_model=ConnectionStatusOut)
def get_status(user_id: uuid.UUID, user: CurrentUser, db: DBSession):
    status = connections_service.connection_status(db, user.id, user_id)
    return ConnectionStatusOut(user_id=user_id, status=status)


@router.post("/{user_id}", response_model=ConnectionOut)
def request_connection(user_id: uuid.UUID, user: CurrentUser, db: DBSession):
    return connections_service.request_connection(db, user, user_id)


@router.put("/{connection_id}/accept", response_model=ConnectionOut)
def accept_connection(connection_id: uuid.UUID, user: CurrentUser, db: DBSession):
    return connections_service.accept_connection(db, user, connection_id)


@router.put("/{user_id}/block", response_model=ConnectionOut)
def block_user(user_id: uuid.UUID, user: CurrentUser, db: DBSession):
    return connections_service.block_user(db, user, user_id)
