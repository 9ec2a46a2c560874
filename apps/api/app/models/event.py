from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class EventStatus(str, Enum):
    DRAFT = "draft"
    LIVE = "live"
    ENDED = "ended"


class EventPrivacy(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A mingle: a time-boxed, location-anchored meetup proposal.

    ``status`` is the only persisted lifecycle field; ``is_active`` and
    ``is_draft`` are derived from it.
    """

    __tablename__ = "events"
    __table_args__ = (
        sa.CheckConstraint("max_participants >= 1", name="ck_events_max_participants_positive"),
        sa.CheckConstraint(
            "participant_count >= 0 AND participant_count <= max_participants",
            name="ck_events_participant_count_range",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_events_window_order"),
        sa.Index("ix_events_status_end_time", "status", "end_time"),
        sa.Index("ix_events_lat_lng", "latitude", "longitude"),
    )

    owner_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(sa.JSON, nullable=False, default=list)
    intent_card: Mapped[str] = mapped_column(String(50), nullable=False, default="ready-to-mingle")

    # Reference into object storage; bytes never live in the database
    photo_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    latitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    longitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    location_name: Mapped[str | None] = mapped_column(String(300), nullable=True)

    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    privacy: Mapped[EventPrivacy] = mapped_column(
        sa.Enum(EventPrivacy, name="event_privacy", values_callable=_enum_values),
        nullable=False,
        default=EventPrivacy.PUBLIC,
    )
    status: Mapped[EventStatus] = mapped_column(
        sa.Enum(EventStatus, name="event_status", values_callable=_enum_values),
        nullable=False,
        default=EventStatus.DRAFT,
        server_default=EventStatus.DRAFT.value,
    )

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.LIVE

    @property
    def is_draft(self) -> bool:
        return self.status == EventStatus.DRAFT

    def is_expired(self, now: datetime) -> bool:
        return self.status == EventStatus.LIVE and self.end_time <= now
