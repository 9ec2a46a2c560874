from __future__ import annotations

from datetime import datetime
from uuid import UUID

from app.api.v1.schemas.events import SchemaBase
from app.models.connection import ConnectionStatus


class ConnectionOut(SchemaBase):
    id: UUID
    requester_id: UUID
    addressee_id: UUID
    status: ConnectionStatus
    created_at: datetime
    updated_at: datetime


class ConnectionStatusOut(SchemaBase):
    user_id: UUID
    status: ConnectionStatus
