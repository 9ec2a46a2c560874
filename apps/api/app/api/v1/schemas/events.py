from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.api.v1.schemas.intent_cards import DEFAULT_INTENT_CARD, validate_intent_card
from app.models.event import EventPrivacy, EventStatus

MAX_TAGS = 20
MAX_TAG_LENGTH = 40


def _ensure_tzaware(value: datetime | None) -> datetime | None:
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return value


def _normalize_tags(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    normalized: list[str] = []
    seen: set[str] = set()
    for value in values:
        item = value.strip()
        if not item:
            continue
        if len(item) > MAX_TAG_LENGTH:
            raise ValueError(f"tags must be at most {MAX_TAG_LENGTH} characters")
        lower = item.lower()
        if lower in seen:
            continue
        seen.add(lower)
        normalized.append(item)
    if len(normalized) > MAX_TAGS:
        raise ValueError(f"at most {MAX_TAGS} tags are allowed")
    return normalized


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class TZAwareMixin(BaseModel):
    @field_validator(
        "start_time",
        "end_time",
        "ended_at",
        "created_at",
        "updated_at",
        mode="after",
        check_fields=False,
    )
    @classmethod
    def _validate_tzaware(cls, value: datetime | None) -> datetime | None:
        return _ensure_tzaware(value)


class TagsMixin(BaseModel):
    @field_validator("tags", mode="after", check_fields=False)
    @classmethod
    def _validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_tags(value)


class IntentCardMixin(BaseModel):
    @field_validator("intent_card", mode="after", check_fields=False)
    @classmethod
    def _validate_intent_card(cls, value: str | None) -> str | None:
        return validate_intent_card(value)


class EventDraftCreate(IntentCardMixin, TagsMixin, SchemaBase):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    tags: list[str] = Field(default_factory=list)
    intent_card: str = Field(default=DEFAULT_INTENT_CARD, max_length=50)
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    location_name: str | None = Field(default=None, max_length=300)
    max_participants: int = Field(ge=1, le=1000)
    privacy: EventPrivacy = EventPrivacy.PUBLIC

    @field_validator("title", mode="after")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title is required")
        return value


class EventLiveCreate(TZAwareMixin, EventDraftCreate):
    start_time: datetime | None = None
    end_time: datetime | None = None

    @model_validator(mode="after")
    def _validate_time_bounds(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventDraftUpdate(IntentCardMixin, TagsMixin, SchemaBase):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    tags: list[str] | None = None
    intent_card: str | None = Field(default=None, max_length=50)
    latitude: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)
    location_name: str | None = Field(default=None, max_length=300)
    max_participants: int | None = Field(default=None, ge=1, le=1000)
    privacy: EventPrivacy | None = None

    @model_validator(mode="after")
    def _reject_nulls(self):
        for key in (
            "title",
            "tags",
            "intent_card",
            "latitude",
            "longitude",
            "max_participants",
            "privacy",
        ):
            if key in self.model_fields_set and getattr(self, key) is None:
                raise ValueError(f"{key} cannot be null")
        return self


class EventOut(TZAwareMixin, SchemaBase):
    id: UUID
    owner_id: UUID
    title: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    intent_card: str
    photo_url: str | None = None
    latitude: float
    longitude: float
    location_name: str | None = None
    start_time: datetime
    end_time: datetime
    ended_at: datetime | None = None
    max_participants: int
    participant_count: int
    privacy: EventPrivacy
    status: EventStatus
    is_active: bool
    is_draft: bool
    created_at: datetime
    updated_at: datetime
    distance_m: float | None = None


class EventListOut(SchemaBase):
    items: list[EventOut]
    count: int = Field(ge=0)


class ParticipantOut(SchemaBase):
    user_id: UUID
    joined_at: datetime


class ParticipantListOut(SchemaBase):
    event_id: UUID
    items: list[ParticipantOut]


class InviteIn(SchemaBase):
    user_id: UUID


class InviteOut(SchemaBase):
    event_id: UUID
    user_id: UUID
    invited_by: UUID
    created_at: datetime


class IntentCardOut(SchemaBase):
    id: str
    label: str
    emoji: str


class SweepOut(SchemaBase):
    ended: list[UUID]
    purged: list[UUID]
