import uuid

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class EventInvite(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_invites"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_invite_event_user"),)

    event_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invited_by: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
